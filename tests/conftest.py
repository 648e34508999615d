import _pytest.logging
import pytest

from sutkit.log import Logger


@pytest.fixture(name='root_logger')
def fixture_root_logger(caplog: _pytest.logging.LogCaptureFixture) -> Logger:
    """
    A logger to use for logging and/or spawning logger hierarchy.
    """

    return Logger.create(verbose=0, debug=0, quiet=False, apply_colors=False)
