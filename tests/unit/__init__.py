import logging
import re
from typing import Any, Callable

import _pytest.logging

import sutkit.log


class PatternMatching:
    def __init__(self, pattern: str, method: str) -> None:
        self.pattern = re.compile(pattern)
        self.method = getattr(self.pattern, method)

    def __eq__(self, actual: object) -> bool:
        return isinstance(actual, str) and self.method(actual) is not None

    def __repr__(self) -> str:
        return f'<PatternMatching: {self.pattern.pattern}>'


def MATCH(pattern: str) -> PatternMatching:  # noqa: N802
    """ Use ``re.match`` to compare a string with a pattern """
    return PatternMatching(pattern, 'match')


def SEARCH(pattern: str) -> PatternMatching:  # noqa: N802
    """ Use ``re.search`` to compare a string with a pattern """
    return PatternMatching(pattern, 'search')


def _assert_log(
        caplog: _pytest.logging.LogCaptureFixture,
        evaluator: Callable[[Any], bool] = any,
        not_present: bool = False,
        **tests: Any) -> None:
    """
    Assert log contains a record - logged message - with given properties.

    Each keyword argument describes one property of a record: ``message``,
    ``levelno`` and so on. Properties of ``details`` attached by sutkit's
    logger are accessible by ``details_`` prefix, e.g. ``details_key``.
    Messages are compared without colors.
    """

    def _report(message: str) -> None:
        for record in caplog.records:
            print(f'{record.levelname:8} {sutkit.log.remove_color(record.getMessage())}')

        raise AssertionError(message)

    def _cmp(record: logging.LogRecord) -> bool:
        for field_name, expected in tests.items():
            if field_name.startswith('details_'):
                details = getattr(record, 'details', None)

                if details is None:
                    return False

                actual = getattr(details, field_name[len('details_'):])

            elif field_name == 'message':
                actual = sutkit.log.remove_color(record.getMessage())

            else:
                actual = getattr(record, field_name)

            if expected != actual:
                return False

        return True

    found = evaluator(_cmp(record) for record in caplog.records)

    if not_present and found:
        _report(f'Unexpected log record found: {tests}')

    if not not_present and not found:
        _report(f'Expected log record not found: {tests}')


def assert_log(caplog: _pytest.logging.LogCaptureFixture, **tests: Any) -> None:
    _assert_log(caplog, **tests)


def assert_not_log(caplog: _pytest.logging.LogCaptureFixture, **tests: Any) -> None:
    _assert_log(caplog, not_present=True, **tests)
