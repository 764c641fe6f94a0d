import io
from pathlib import Path
from typing import Any, Callable, List, Tuple

import pytest

from pytest_teamcity_report.reporter import TeamCityReporter

pytest_plugins = ["pytester"]


def parse_service_messages(text: str) -> List[str]:
    return [line for line in text.splitlines() if line.startswith("##teamcity[")]


class RecordingPrinter:
    """Records every call made on the secondary printer."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def record(*args: Any) -> None:
            self.calls.append((name, args))

        return record

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def service_messages() -> Callable[[str], List[str]]:
    return parse_service_messages


@pytest.fixture
def stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def printer() -> RecordingPrinter:
    return RecordingPrinter()


@pytest.fixture
def reporter(stream, printer) -> TeamCityReporter:
    return TeamCityReporter(stream, printer=printer, version="1.2.3")


@pytest.fixture
def testmodule(pytester) -> Path:
    return pytester.makepyfile(
        test_sample="""
    import pytest


    def test_ok():
        assert 1 + 1 == 2


    class TestGroup:
        def test_inner(self):
            assert "a" in "abc"

        @pytest.mark.skip("Skipped!")
        def test_skipped(self):
            pass


    def test_fails():
        assert [1] == [2]


    @pytest.fixture
    def error_at_setup():
        raise RuntimeError("broken fixture")


    def test_error_at_setup(error_at_setup):
        pass


    @pytest.mark.xfail(reason="not yet")
    def test_expected_failure():
        assert False


    def test_warns():
        import warnings

        warnings.warn(UserWarning("careful"))
    """
    )
