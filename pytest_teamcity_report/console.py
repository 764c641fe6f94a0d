from collections import Counter
from typing import TYPE_CHECKING, Dict

from pytest_teamcity_report.types import CaseHandle, RunResult, SuiteHandle

if TYPE_CHECKING:
    from _pytest.terminal import TerminalReporter  # pragma: no cover


MARKUP: Dict[str, Dict[str, bool]] = {
    "ERROR": {"red": True, "bold": True},
    "FAILED": {"red": True, "bold": True},
    "WARNING": {"yellow": True},
    "INCOMPLETE": {"yellow": True},
    "RISKY": {"yellow": True},
    "SKIPPED": {"yellow": True},
}


class ConsolePrinter:
    """Human-readable companion output, written through pytest's terminal."""

    def __init__(
        self, terminalreporter: "TerminalReporter", show_assertions: bool = True
    ) -> None:
        self.terminalreporter = terminalreporter
        # Passing asserts are only counted with enable_assertion_pass_hook
        self.show_assertions = show_assertions
        self.outcomes: Counter = Counter()

    def _write_outcome(self, label: str, test: CaseHandle, message: str) -> None:
        self.outcomes[label] += 1
        line = f"{label} {test.canonical}"
        if message:
            line += f" - {message}"
        self.terminalreporter.write_line(line, **MARKUP[label])

    def suite_started(self, suite: SuiteHandle) -> None:
        pass

    def test_started(self, test: CaseHandle) -> None:
        pass

    def add_error(self, test: CaseHandle, message: str, elapsed: float) -> None:
        self._write_outcome("ERROR", test, message)

    def add_failure(self, test: CaseHandle, message: str, elapsed: float) -> None:
        self._write_outcome("FAILED", test, message)

    def add_warning(self, test: CaseHandle, message: str, elapsed: float) -> None:
        self._write_outcome("WARNING", test, message)

    def add_incomplete(self, test: CaseHandle, message: str, elapsed: float) -> None:
        self._write_outcome("INCOMPLETE", test, message)

    def add_risky(self, test: CaseHandle, message: str, elapsed: float) -> None:
        self._write_outcome("RISKY", test, message)

    def add_skipped(self, test: CaseHandle, message: str, elapsed: float) -> None:
        self._write_outcome("SKIPPED", test, message)

    def test_finished(self, test: CaseHandle, elapsed: float) -> None:
        pass

    def suite_finished(self, suite: SuiteHandle) -> None:
        pass

    def print_result(self, result: RunResult) -> None:
        terminalreporter = self.terminalreporter
        terminalreporter.write_sep("=", "TeamCity report summary")
        line = f"teamcity: {result.tests} tests"
        if self.show_assertions:
            line += f", {result.assertions} assertions"
        for label, count in sorted(self.outcomes.items()):
            line += f", {count} {label.lower()}"
        terminalreporter.write_line(line)
