"""Tests for fault kinds and FaultClassifier"""

import pytest

from reprise.domain.classifier import FaultClassifier
from reprise.domain.config.policy import RetryPolicy
from reprise.domain.errors import SkipSignal
from reprise.domain.models.fault import Classification, FaultKind


class TestFaultKind:
    """Tests for FaultKind matching"""

    def test_lineage_from_exception_type(self):
        """Test lineage lists the type and its bases"""
        kind = FaultKind.of_type(KeyError)
        assert kind.lineage == (
            "builtins.KeyError",
            "builtins.LookupError",
            "builtins.Exception",
            "builtins.BaseException",
        )

    def test_specific_kind_is_a_general_kind(self):
        """Test is-a matching follows the lineage one way"""
        key_error = FaultKind.of_type(KeyError)
        lookup_error = FaultKind.of_type(LookupError)
        assert key_error.is_a(lookup_error)
        assert not lookup_error.is_a(key_error)

    def test_unqualified_name_matches(self):
        """Test declared short names match qualified lineage entries"""
        assert FaultKind.of_type(KeyError).is_a(FaultKind.named("LookupError"))
        assert not FaultKind.of_type(KeyError).is_a(FaultKind.named("ValueError"))

    def test_qualified_name_must_match_exactly(self):
        """Test qualified names do not match by last component"""
        assert not FaultKind.of_type(KeyError).is_a(FaultKind.named("other.KeyError"))

    def test_derived_kinds(self):
        """Test explicit kinds imply their parents"""
        network = FaultKind("network")
        timeout = FaultKind.derive("network.timeout", network)
        assert timeout.lineage == ("network.timeout", "network")
        assert timeout.is_a(network)
        assert not network.is_a(timeout)

    def test_explicit_tag_wins_over_type(self):
        """Test a fault_kind attribute overrides the type lineage"""
        timeout = FaultKind.derive("network.timeout", FaultKind("network"))
        fault = RuntimeError("socket timed out")
        fault.fault_kind = timeout
        assert FaultKind.of(fault) is timeout

    def test_blank_name_rejected(self):
        """Test fault kinds need a name"""
        with pytest.raises(ValueError):
            FaultKind(" ")


class TestFaultClassifier:
    """Tests for FaultClassifier"""

    def test_default_policy_tolerates_everything(self):
        """Test default allow-list covers all kinds"""
        classifier = FaultClassifier(RetryPolicy())
        assert classifier.classify(AssertionError()) is Classification.TOLERABLE
        assert classifier.classify(ValueError()) is Classification.TOLERABLE

    def test_subclass_of_declared_kind(self):
        """Test declared kinds also match more specific faults"""
        classifier = FaultClassifier(RetryPolicy(tolerable_faults=[ConnectionError]))
        assert classifier.classify(ConnectionResetError()) is Classification.TOLERABLE
        assert classifier.classify(ValueError()) is Classification.NON_TOLERABLE

    def test_declared_by_name(self):
        """Test kinds declared by name"""
        classifier = FaultClassifier(RetryPolicy(tolerable_faults=["AssertionError"]))
        assert classifier.classify(AssertionError("flaky")) is Classification.TOLERABLE
        assert classifier.classify(KeyError("x")) is Classification.NON_TOLERABLE

    def test_skip_signal_always_tolerable(self):
        """Test skip signal is tolerable even with an empty allow-list"""
        classifier = FaultClassifier(RetryPolicy(tolerable_faults=[]))
        assert classifier.classify(SkipSignal("repeat")) is Classification.TOLERABLE
        assert classifier.classify(AssertionError()) is Classification.NON_TOLERABLE

    def test_explicit_fault_kinds(self):
        """Test classification of tagged faults"""
        network = FaultKind("network")
        classifier = FaultClassifier(RetryPolicy(tolerable_faults=[network]))

        fault = RuntimeError("timed out")
        fault.fault_kind = FaultKind.derive("network.timeout", network)
        assert classifier.classify(fault) is Classification.TOLERABLE
        assert classifier.classify(RuntimeError("plain")) is Classification.NON_TOLERABLE
