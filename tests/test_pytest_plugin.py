"""End-to-end tests for the pytest plugin"""

import pytest

PLUGIN = "reprise.infrastructure.pytest_plugin"


def _run(pytester, *args):
    return pytester.runpytest("-p", PLUGIN, *args)


class TestRepeatableMarker:
    """Tests for @pytest.mark.repeatable"""

    def test_flaky_test_passes(self, pytester):
        """Test absorbed failures are reported as repeated"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(repeats=3)
            def test_flaky():
                CALLS.append(1)
                assert len(CALLS) >= 3

            def test_calls():
                assert len(CALLS) == 3
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=2)
        assert result.parseoutcomes()["repeated"] == 2

    def test_exhausted_budget_fails_with_real_fault(self, pytester):
        """Test repeats=10 runs 11 attempts and reports the assertion"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(repeats=10)
            def test_broken():
                CALLS.append(1)
                assert False, "real failure"

            def test_calls():
                assert len(CALLS) == 11
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=1, failed=1)
        result.stdout.fnmatch_lines(["*real failure*"])
        result.stdout.no_fnmatch_line("*SkipSignal*")

    def test_non_tolerable_fault_runs_once(self, pytester):
        """Test faults outside the allow-list are not repeated"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(repeats=5, tolerable_faults=[ConnectionError])
            def test_wrong_kind():
                CALLS.append(1)
                raise ValueError("boom")

            def test_calls():
                assert len(CALLS) == 1
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=1, failed=1)
        result.stdout.fnmatch_lines(["*ValueError: boom*"])

    def test_tolerable_fault_by_name(self, pytester):
        """Test kinds declared by name match subclasses"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(repeats=2, tolerable_faults=["ConnectionError"])
            def test_network():
                CALLS.append(1)
                if len(CALLS) == 1:
                    raise ConnectionResetError("reset by peer")
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=1)

    def test_min_successes(self, pytester):
        """Test a passing test runs until min_successes"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(repeats=4, min_successes=3)
            def test_stable():
                CALLS.append(1)

            def test_calls():
                assert len(CALLS) == 3
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=4)

    def test_positional_repeats(self, pytester):
        """Test repeats given as the only positional argument"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(2)
            def test_broken():
                CALLS.append(1)
                assert False

            def test_calls():
                assert len(CALLS) == 3
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=1, failed=1)

    def test_invalid_marker_fails_test(self, pytester):
        """Test invalid policy values are reported as a failure"""
        pytester.makepyfile(
            """
            import pytest

            @pytest.mark.repeatable(repeats=0)
            def test_misconfigured():
                pass
            """
        )
        result = _run(pytester)
        result.assert_outcomes(failed=1)
        result.stdout.fnmatch_lines(["*Invalid retry policy*", "*repeats*"])

    def test_unreachable_target_fails_without_running(self, pytester):
        """Test more required successes than attempts"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(repeats=1, min_successes=3)
            def test_impossible():
                CALLS.append(1)

            def test_calls():
                assert CALLS == []
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=1, failed=1)
        result.stdout.fnmatch_lines(["*ultimately failed*"])

    def test_verbose_status(self, pytester):
        """Test verbose output labels absorbed attempts"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(repeats=1)
            def test_flaky():
                CALLS.append(1)
                assert len(CALLS) == 2
            """
        )
        result = _run(pytester, "-v")
        result.stdout.fnmatch_lines(["*test_flaky REPEATED*", "*test_flaky PASSED*"])

    def test_unmarked_tests_run_once(self, pytester):
        """Test tests without the marker are left alone"""
        pytester.makepyfile(
            """
            CALLS = []

            def test_plain():
                CALLS.append(1)
                assert False

            def test_calls():
                assert len(CALLS) == 1
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=1, failed=1)


class TestFixturesAcrossAttempts:
    """Tests for fixture scopes between attempts"""

    def test_function_fixtures_recreated_module_fixtures_kept(self, pytester):
        """Test only function scope is torn down between attempts"""
        pytester.makepyfile(
            """
            import pytest

            SETUPS = {"module": 0, "function": 0, "finalized": 0}

            @pytest.fixture(scope="module")
            def shared():
                SETUPS["module"] += 1
                yield

            @pytest.fixture
            def fresh():
                SETUPS["function"] += 1
                yield
                SETUPS["finalized"] += 1

            @pytest.mark.repeatable(repeats=2)
            def test_flaky(shared, fresh):
                assert SETUPS["function"] >= 3

            def test_counts(shared):
                assert SETUPS == {"module": 1, "function": 3, "finalized": 3}
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=2)

    def test_setup_error_stops_repetitions(self, pytester):
        """Test a failing fixture is not repeated"""
        pytester.makepyfile(
            """
            import pytest

            SETUPS = []

            @pytest.fixture
            def broken():
                SETUPS.append(1)
                raise RuntimeError("no database")

            @pytest.mark.repeatable(repeats=3)
            def test_needs_database(broken):
                pass

            def test_setups():
                assert len(SETUPS) == 1
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=1, errors=1)


class TestConfiguration:
    """Tests for plugin options and config files"""

    def test_disable_option_runs_once(self, pytester):
        """Test --reprise-disable turns repetitions off"""
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable(repeats=3)
            def test_flaky():
                CALLS.append(1)
                assert len(CALLS) >= 2

            def test_calls():
                assert len(CALLS) == 1
            """
        )
        result = _run(pytester, "--reprise-disable")
        result.assert_outcomes(passed=1, failed=1)

    def test_config_file_defaults(self, pytester):
        """Test marker defaults come from the config file"""
        config = pytester.path / "reprise.yml"
        config.write_text("policy:\n  repeats: 3\n", encoding="utf-8")
        pytester.makepyfile(
            """
            import pytest

            CALLS = []

            @pytest.mark.repeatable
            def test_broken():
                CALLS.append(1)
                assert False

            @pytest.mark.repeatable(repeats=1)
            def test_override():
                CALLS.append(2)
                assert False

            def test_calls():
                assert CALLS.count(1) == 4
                assert CALLS.count(2) == 2
            """
        )
        result = _run(pytester, f"--reprise-config={config}")
        result.assert_outcomes(passed=1, failed=2)


class TestPreActions:
    """Tests for @pytest.mark.pre_actions"""

    def test_class_and_method_handlers(self, pytester):
        """Test class handlers run once and method handlers in order"""
        pytester.makepyfile(
            """
            import pytest
            from reprise.application.pre_actions import HIGHEST_PRECEDENCE, PreActionHandler

            EVENTS = []

            class HandlerA(PreActionHandler):
                def execute(self):
                    EVENTS.append("A")

            class HandlerB(PreActionHandler):
                def execute(self):
                    EVENTS.append("B")

                def order(self):
                    return HIGHEST_PRECEDENCE

            class HandlerZ(PreActionHandler):
                def execute(self):
                    EVENTS.append("Z")

            @pytest.mark.pre_actions(HandlerZ)
            class TestWithPreActions:
                @pytest.mark.pre_actions(HandlerA, HandlerB)
                def test_first(self):
                    assert EVENTS == ["Z", "B", "A"]

                def test_second(self):
                    assert EVENTS == ["Z", "B", "A"]
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=2)

    def test_method_handlers_run_before_each_attempt(self, pytester):
        """Test method handlers run again for every attempt"""
        pytester.makepyfile(
            """
            import pytest
            from reprise.application.pre_actions import PreActionHandler

            EVENTS = []

            class Reset(PreActionHandler):
                def execute(self):
                    EVENTS.append("reset")

            @pytest.mark.repeatable(repeats=3)
            @pytest.mark.pre_actions(handlers=[Reset])
            def test_flaky():
                assert len(EVENTS) == 3

            def test_events():
                assert EVENTS == ["reset"] * 3
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=2)


class TestUnstartedRuns:
    """Tests for marked tests that never run an attempt"""

    @pytest.mark.parametrize(
        "marker",
        [
            "@pytest.mark.repeatable(repeats=0)",
            "@pytest.mark.repeatable(repeats=1, min_successes=5)",
        ],
    )
    def test_following_module_still_sets_up(self, pytester, marker):
        """Test the previous module is torn down before the next one runs"""
        pytester.makepyfile(
            test_a=f"""
            import pytest

            def test_plain():
                pass

            {marker}
            def test_never_started():
                pass
            """,
            test_b="""
            def test_other():
                pass
            """,
        )
        result = _run(pytester)
        result.assert_outcomes(passed=2, failed=1)
        result.stdout.no_fnmatch_line("*not torn down properly*")

    def test_module_fixture_finalized(self, pytester):
        """Test module fixtures of the previous module are finalized"""
        pytester.makepyfile(
            test_a="""
            import pytest

            EVENTS = []

            @pytest.fixture(scope="module")
            def resource():
                EVENTS.append("setup")
                yield
                EVENTS.append("teardown")

            def test_uses_resource(resource):
                pass

            @pytest.mark.repeatable(repeats=0)
            def test_misconfigured():
                pass
            """,
            test_b="""
            import test_a

            def test_resource_released():
                assert test_a.EVENTS == ["setup", "teardown"]
            """,
        )
        result = _run(pytester)
        result.assert_outcomes(passed=2, failed=1)


class TestModuleLevelPreActions:
    """Tests for pre_actions applied with a module pytestmark"""

    def test_module_marker_warns(self, pytester):
        """Test handlers declared on a module are reported, not run"""
        pytester.makepyfile(
            """
            import pytest
            from reprise.application.pre_actions import PreActionHandler

            EVENTS = []

            class Record(PreActionHandler):
                def execute(self):
                    EVENTS.append("run")

            pytestmark = pytest.mark.pre_actions(Record)

            def test_first():
                assert EVENTS == []

            def test_second():
                assert EVENTS == []
            """
        )
        result = _run(pytester)
        result.assert_outcomes(passed=2)
        result.stdout.fnmatch_lines(["*pre_actions marker on module*is ignored*"])
