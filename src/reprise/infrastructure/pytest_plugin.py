"""pytest plugin - runs ``@pytest.mark.repeatable`` tests under a retry policy

Each attempt goes through setup, call and teardown. Fixtures wider than
function scope stay set up until the last attempt of the test.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import pytest
from _pytest.runner import call_and_report

from reprise.application.pre_actions import PreActionDispatcher
from reprise.application.repetition_service import RepetitionRun, RepetitionService
from reprise.domain.errors import ConfigurationError, SkipSignal
from reprise.domain.models.attempt import AttemptDescriptor
from reprise.infrastructure.config.config_manager import ConfigManager
from reprise.infrastructure.policy_resolver import MARKER_NAME, MarkerPolicyResolver

logger = logging.getLogger(__name__)

PRE_ACTIONS_MARKER = "pre_actions"

service_key = pytest.StashKey[RepetitionService]()
run_key = pytest.StashKey[RepetitionRun]()
attempt_key = pytest.StashKey[AttemptDescriptor]()
seen_nodes_key = pytest.StashKey[set]()


class RepetitionSkipped(pytest.skip.Exception):
    """Skip outcome of an attempt whose tolerable fault was absorbed"""


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("reprise", "repeat flaky tests under a retry policy")
    group.addoption(
        "--reprise-config",
        action="store",
        default=None,
        metavar="PATH",
        help="Path to .reprise.yml (searched from the current directory by default)",
    )
    group.addoption(
        "--reprise-disable",
        action="store_true",
        default=False,
        help="Run repeatable tests once, without repetitions",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{MARKER_NAME}(repeats=1, min_successes=1, suspend_ms=0, tolerable_faults=None, "
        "name_pattern=None): repeat the test under a retry policy",
    )
    config.addinivalue_line(
        "markers",
        f"{PRE_ACTIONS_MARKER}(*handlers): run handlers before the test class or before each test attempt",
    )

    try:
        manager = ConfigManager(config_path=config.getoption("reprise_config"))
    except ConfigurationError as e:
        raise pytest.UsageError(str(e)) from e

    enabled = manager.is_enabled() and not config.getoption("reprise_disable")
    resolver = MarkerPolicyResolver(
        manager.get_policy_defaults(),
        enabled=enabled,
        # A skip raised by the test body aborts the attempt like any tolerable fault
        implicit_tolerable=(pytest.skip.Exception,),
    )
    config.stash[service_key] = RepetitionService(resolver)
    config.stash[seen_nodes_key] = set()


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_protocol(item: pytest.Item, nextitem: Optional[pytest.Item]) -> Optional[bool]:
    service = item.config.stash[service_key]
    if not service.supports(item):
        return None

    item.ihook.pytest_runtest_logstart(nodeid=item.nodeid, location=item.location)
    executed = 0
    try:
        run = service.start_run(item, base_name=item.name)
    except ConfigurationError as e:
        _log_failure(item, str(e))
    else:
        item.stash[run_key] = run
        try:
            executed = _run_attempts(item, nextitem, run)
        finally:
            del item.stash[run_key]
            if attempt_key in item.stash:
                del item.stash[attempt_key]
    if not executed:
        _teardown_unstarted(item, nextitem)
    item.ihook.pytest_runtest_logfinish(nodeid=item.nodeid, location=item.location)
    return True


def _run_attempts(item: pytest.Item, nextitem: Optional[pytest.Item], run: RepetitionRun) -> int:
    executed = 0
    for attempt in run:
        condition = run.resolve_termination(attempt)
        if not condition.enabled:
            if attempt.index == 1:
                _log_failure(item, f"{attempt.display_label}: {condition.reason}")
            break

        item.stash[attempt_key] = attempt
        reports = _run_phases(item, nextitem, run)
        executed += 1
        if not reports[0].passed:
            # Setup failed or skipped, nothing to repeat
            break
    return executed


def _run_phases(
    item: pytest.Item, nextitem: Optional[pytest.Item], run: RepetitionRun
) -> List[pytest.TestReport]:
    if hasattr(item, "_request") and not item._request:
        item._initrequest()

    reports = [call_and_report(item, "setup", log=True)]
    if reports[0].passed:
        reports.append(call_and_report(item, "call", log=True))

    # Tearing down towards the parent only finalizes function scope
    following = item.parent if reports[0].passed and run.has_next() else nextitem
    reports.append(call_and_report(item, "teardown", log=True, nextitem=following))

    if hasattr(item, "_request"):
        item._request = False
        item.funcargs = None
    return reports


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item: pytest.Item) -> None:
    _warn_module_handlers(item)
    class_node = item.getparent(pytest.Class)
    if class_node is None:
        return
    dispatched = item.config.stash[seen_nodes_key]
    if class_node.nodeid in dispatched:
        return
    dispatched.add(class_node.nodeid)

    handlers = _declared_handlers(class_node)
    if handlers:
        logger.debug(f"Running {len(handlers)} class pre-action(s) for {class_node.nodeid}")
        PreActionDispatcher(handlers).dispatch()


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item: pytest.Item):
    handlers = _declared_handlers(item)
    if handlers:
        PreActionDispatcher(handlers).dispatch()

    run = item.stash.get(run_key, None)
    if run is None:
        return (yield)

    try:
        result = yield
    except (KeyboardInterrupt, SystemExit):
        raise
    except BaseException as fault:
        try:
            run.on_attempt_outcome(fault)
        except SkipSignal as signal:
            attempt = item.stash[attempt_key]
            raise RepetitionSkipped(
                f"{attempt.display_label}: tolerated {type(fault).__name__}, repeating"
            ) from signal
        raise
    run.on_attempt_outcome(None)
    return result


@pytest.hookimpl(wrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    report = yield
    attempt = item.stash.get(attempt_key, None)
    if attempt is not None:
        report.repetition = attempt.display_label
        report.repeated = call.excinfo is not None and call.excinfo.errisinstance(RepetitionSkipped)
    return report


def pytest_report_teststatus(report: pytest.TestReport, config: pytest.Config):
    if getattr(report, "repeated", False):
        return "repeated", "R", ("REPEATED", {"yellow": True})
    return None


def _declared_handlers(node: Any) -> List[Any]:
    """Handlers declared directly on a node (not inherited from parents)"""
    handlers: List[Any] = []
    for mark in node.own_markers:
        if mark.name == PRE_ACTIONS_MARKER:
            handlers.extend(mark.args)
            handlers.extend(mark.kwargs.get("handlers", ()))
    return handlers


def _warn_module_handlers(item: pytest.Item) -> None:
    # pre_actions are honoured on classes and functions only
    module = item.getparent(pytest.Module)
    if module is None:
        return
    seen = item.config.stash[seen_nodes_key]
    if module.nodeid in seen:
        return
    seen.add(module.nodeid)
    if _declared_handlers(module):
        module.warn(
            pytest.PytestConfigWarning(
                f"{PRE_ACTIONS_MARKER} marker on module {module.nodeid} is ignored, "
                "mark the test class or test function instead"
            )
        )


def _log_failure(item: pytest.Item, reason: str) -> None:
    report = pytest.TestReport(
        nodeid=item.nodeid,
        location=item.location,
        keywords={name: 1 for name in item.keywords},
        outcome="failed",
        longrepr=reason,
        when="call",
    )
    item.ihook.pytest_runtest_logreport(report=report)


def _teardown_unstarted(item: pytest.Item, nextitem: Optional[pytest.Item]) -> None:
    """Finalize scopes left open by the previous test when no attempt ran"""
    call = pytest.CallInfo.from_call(
        lambda: item.session._setupstate.teardown_exact(nextitem),
        when="teardown",
        reraise=(KeyboardInterrupt, SystemExit),
    )
    if call.excinfo is not None:
        report = item.ihook.pytest_runtest_makereport(item=item, call=call)
        item.ihook.pytest_runtest_logreport(report=report)
