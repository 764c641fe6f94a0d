import os
from typing import Literal, Optional, Protocol, Union

from pytest_teamcity_report.messages import Dto


class FileBackedSuite(Dto):
    kind: Literal["file"] = "file"
    name: str
    count: int


class SyntheticSuite(Dto):
    """A suite without a file of its own, e.g. a test class.

    Its name carries a two character marker prefix (``::``) and the file it
    was declared in is reported separately.
    """

    kind: Literal["synthetic"] = "synthetic"
    name: str
    count: int
    file_name: str


SuiteHandle = Union[FileBackedSuite, SyntheticSuite]


def make_suite(name: str, count: int, file_name: Optional[str] = None) -> SuiteHandle:
    if file_name is None or os.path.exists(name):
        return FileBackedSuite(name=name, count=count)
    return SyntheticSuite(name=name, count=count, file_name=file_name)


class CaseHandle(Dto):
    name: str
    canonical: str
    # None for test kinds that do not count their own assertions.
    assertion_count: Optional[int] = None


class RunResult(Dto):
    tests: int
    assertions: int


class SecondaryPrinter(Protocol):
    """Methods defined in order of execution."""

    def suite_started(self, suite: SuiteHandle) -> None:
        pass  # pragma: no cover

    def test_started(self, test: CaseHandle) -> None:
        pass  # pragma: no cover

    def add_error(self, test: CaseHandle, message: str, elapsed: float) -> None:
        pass  # pragma: no cover

    def add_failure(self, test: CaseHandle, message: str, elapsed: float) -> None:
        pass  # pragma: no cover

    def add_warning(self, test: CaseHandle, message: str, elapsed: float) -> None:
        pass  # pragma: no cover

    def add_incomplete(self, test: CaseHandle, message: str, elapsed: float) -> None:
        pass  # pragma: no cover

    def add_risky(self, test: CaseHandle, message: str, elapsed: float) -> None:
        pass  # pragma: no cover

    def add_skipped(self, test: CaseHandle, message: str, elapsed: float) -> None:
        pass  # pragma: no cover

    def test_finished(self, test: CaseHandle, elapsed: float) -> None:
        pass  # pragma: no cover

    def suite_finished(self, suite: SuiteHandle) -> None:
        pass  # pragma: no cover

    def print_result(self, result: RunResult) -> None:
        pass  # pragma: no cover
