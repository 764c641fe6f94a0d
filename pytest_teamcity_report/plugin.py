import logging
import sys
from collections import Counter
from typing import TYPE_CHECKING, Generator, List, Optional, TextIO, Tuple

import pytest
from _pytest.config.exceptions import UsageError

from pytest_teamcity_report.console import ConsolePrinter
from pytest_teamcity_report.reporter import TeamCityReporter
from pytest_teamcity_report.types import CaseHandle, SuiteHandle, make_suite

if TYPE_CHECKING:
    from _pytest.config import Config, PytestPluginManager  # pragma: no cover
    from _pytest.config.argparsing import Parser  # pragma: no cover
    from _pytest.nodes import Item, Node  # pragma: no cover
    from _pytest.reports import TestReport  # pragma: no cover
    from _pytest.runner import CallInfo  # pragma: no cover
    from _pytest.terminal import TerminalReporter  # pragma: no cover
    from pytest import Session  # pragma: no cover

logger = logging.getLogger(__name__)

assertions_key = pytest.StashKey[int]()


def pytest_addoption(parser: "Parser", pluginmanager: "PytestPluginManager") -> None:
    group = parser.getgroup("teamcity", "TeamCity service messages")
    group.addoption(
        "--teamcity",
        dest="teamcity",
        action="store_true",
        help="emit TeamCity service messages",
    )
    group.addoption(
        "--teamcity-output",
        dest="teamcityoutput",
        default="",
        help="write TeamCity service messages to this file instead of stdout",
    )
    parser.addini(
        "teamcity_report",
        type="bool",
        default=False,
        help="emit TeamCity service messages without --teamcity",
    )


@pytest.hookimpl(trylast=True)
def pytest_configure(config: "Config") -> None:
    if not (config.option.teamcity or config.getini("teamcity_report")):
        if config.option.teamcityoutput:
            raise UsageError("--teamcity-output should be used with --teamcity")
        return

    if hasattr(config, "workerinput"):
        return

    # Workers write to their own stdout, which never reaches the controller
    numprocesses = getattr(config.option, "numprocesses", None)
    if numprocesses or getattr(config.option, "dist", "no") != "no":
        raise UsageError("--teamcity cannot be used with pytest-xdist (-n, --dist)")

    reporter, stream = get_teamcity_reporter(config)
    plugin = TeamCityReportPlugin(config=config, reporter=reporter, stream=stream)
    config.pluginmanager.register(plugin, "teamcity_report_plugin")


def get_teamcity_reporter(
    config: "Config",
) -> Tuple[TeamCityReporter, Optional[TextIO]]:
    """Build the reporter, returning the stream it owns, if any."""
    output_path = config.option.teamcityoutput
    if output_path:
        logger.debug("writing service messages to %s", output_path)
        stream = open(output_path, "w", encoding="utf-8")
        return TeamCityReporter(stream), stream

    terminalreporter: Optional["TerminalReporter"] = config.pluginmanager.getplugin(
        "terminalreporter"
    )
    printer = None
    if terminalreporter:
        printer = ConsolePrinter(
            terminalreporter,
            show_assertions=config.getini("enable_assertion_pass_hook"),
        )
    return TeamCityReporter(sys.stdout, printer=printer), None


def short_message(report: "TestReport") -> str:
    longrepr = report.longrepr
    if isinstance(longrepr, tuple):
        return longrepr[2]
    reprcrash = getattr(longrepr, "reprcrash", None)
    if reprcrash is not None:
        return reprcrash.message
    return str(longrepr) if longrepr else ""


class TeamCityReportPlugin:
    def __init__(
        self,
        config: "Config",
        reporter: TeamCityReporter,
        stream: Optional[TextIO] = None,
    ) -> None:
        self.config = config
        self.reporter = reporter
        self.stream = stream
        self.suite_counts: Counter = Counter()
        self.open_suites: List[Tuple[str, SuiteHandle]] = []
        self.current_item: Optional["Item"] = None
        self.elapsed: float = 0.0

    @staticmethod
    def _suite_nodes(item: "Item") -> List["Node"]:
        # Session and the rootdir have empty node ids
        return [
            node for node in item.listchain()[1:-1] if node.nodeid not in ("", ".")
        ]

    def _make_suite(self, node: "Node") -> SuiteHandle:
        count = self.suite_counts[node.nodeid]
        if isinstance(node, pytest.Class):
            return make_suite("::" + node.name, count, file_name=str(node.path))
        return make_suite(node.nodeid, count)

    @staticmethod
    def _make_case(item: "Item") -> CaseHandle:
        assertion_count: Optional[int] = None
        if isinstance(item, pytest.Function):
            assertion_count = item.stash.get(assertions_key, 0)
        return CaseHandle(
            name=item.name, canonical=item.nodeid, assertion_count=assertion_count
        )

    def _close_suites(self, keep: List[str]) -> None:
        while self.open_suites and self.open_suites[-1][0] not in keep:
            _, suite = self.open_suites.pop()
            self.reporter.suite_finished(suite)

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtestloop(self, session: "Session") -> Generator[None, None, None]:
        if session.config.option.collectonly:
            yield
            return

        for item in session.items:
            for node in self._suite_nodes(item):
                self.suite_counts[node.nodeid] += 1

        session_suite = make_suite(str(session.config.rootpath), len(session.items))
        self.reporter.suite_started(session_suite)

        yield

        self._close_suites(keep=[])
        self.reporter.suite_finished(session_suite)

    @pytest.hookimpl(hookwrapper=True, tryfirst=True)
    def pytest_runtest_protocol(
        self, item: "Item", nextitem: Optional["Item"]
    ) -> Generator[None, None, None]:
        nodes = self._suite_nodes(item)
        self._close_suites(keep=[node.nodeid for node in nodes])
        for node in nodes[len(self.open_suites) :]:
            suite = self._make_suite(node)
            self.open_suites.append((node.nodeid, suite))
            self.reporter.suite_started(suite)

        self.current_item = item
        self.elapsed = 0.0
        self.reporter.test_started(self._make_case(item))

        yield

        self.reporter.test_finished(self._make_case(item), self.elapsed)

    def pytest_assertion_pass(
        self, item: "Item", lineno: int, orig: str, expl: str
    ) -> None:
        item.stash[assertions_key] = item.stash.get(assertions_key, 0) + 1

    @pytest.hookimpl(hookwrapper=True, tryfirst=True)
    def pytest_runtest_makereport(
        self, item: "Item", call: "CallInfo[None]"
    ) -> Generator[None, None, None]:
        report: "TestReport" = (yield).get_result()
        self.elapsed += report.duration

        if report.passed and not hasattr(report, "wasxfail"):
            return

        reporter = self.reporter
        test = self._make_case(item)
        if hasattr(report, "wasxfail"):
            if report.skipped:
                reporter.add_incomplete(test, report.wasxfail, self.elapsed)
            elif report.passed:
                reporter.add_risky(test, report.wasxfail, self.elapsed)
        elif report.skipped:
            reporter.add_skipped(test, short_message(report), self.elapsed)
        elif report.when == "call" and (
            call.excinfo is None or call.excinfo.errisinstance(AssertionError)
        ):
            # A strict XPASS fails the call without an exception
            reporter.add_failure(test, short_message(report), self.elapsed)
        else:
            reporter.add_error(test, short_message(report), self.elapsed)

    def pytest_warning_recorded(
        self, warning_message, when: str, nodeid: str, location
    ) -> None:
        item = self.current_item
        if when != "runtest" or item is None or item.nodeid != nodeid:
            return
        self.reporter.add_warning(
            self._make_case(item), str(warning_message.message), self.elapsed
        )

    def pytest_terminal_summary(self, terminalreporter: "TerminalReporter") -> None:
        if not self.config.option.collectonly:
            self.reporter.print_result()

    def pytest_unconfigure(self, config: "Config") -> None:
        if self.stream is not None:
            self.stream.close()
