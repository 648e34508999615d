"""
Logging of hypervisor and configuration progress

:py:class:`Logger` wraps a :py:class:`logging.Logger` and renders key/value
messages, indented by their nesting depth and prefixed with labels - a host
configured in parallel with other hosts logs as ``[client] timesync: ...``.

Every record carries :py:class:`LogRecordDetails` describing the message and
the settings of the logger that emitted it. Console output honors verbosity,
debug and quiet settings through :py:class:`ConsoleFilter`, while records are
always emitted, so that handlers attached by applications see everything.
"""

import dataclasses
import itertools
import logging
import os
import re
import sys
from typing import TYPE_CHECKING, Optional, Union

import click

if TYPE_CHECKING:
    import sutkit.utils

#: Number of spaces per nesting level.
INDENT = 4

#: Name of the :py:mod:`logging` logger sutkit logs to by default.
LOGGER_NAME = 'sutkit'

LoggableValue = Union[str, int, bool, float, 'sutkit.utils.Command']

ANSI_COLOR_PATTERN = re.compile(r'\x1b\[[0-9;]*m')


def remove_color(text: str) -> str:
    """ Remove ANSI color sequences from a string """
    return ANSI_COLOR_PATTERN.sub('', text)


def debug_level_from_envvar() -> int:
    """
    Read the debug level enforced by the ``SUTKIT_DEBUG`` environment variable.

    :returns: the debug level, ``0`` when the variable is not set.
    :raises sutkit.utils.GeneralError: when the value is not an integer.
    """

    import sutkit.utils

    raw_value = os.getenv('SUTKIT_DEBUG')

    if raw_value is None:
        return 0

    try:
        return int(raw_value)

    except ValueError as exc:
        raise sutkit.utils.GeneralError(
            f"Invalid debug level '{raw_value}' in SUTKIT_DEBUG, use an integer.") from exc


def decide_colorization(no_color: bool = False, force_color: bool = False) -> bool:
    """
    Decide whether console logging should be colorized.

    ``force_color`` and ``SUTKIT_FORCE_COLOR`` win over ``no_color``,
    ``NO_COLOR`` and ``SUTKIT_NO_COLOR``. Without any of them, colors are
    used when the standard error output is a terminal.
    """

    if force_color or 'SUTKIT_FORCE_COLOR' in os.environ:
        return True

    if no_color or 'NO_COLOR' in os.environ or 'SUTKIT_NO_COLOR' in os.environ:
        return False

    return sys.stderr.isatty()


def render_labels(labels: list[str]) -> str:
    return ''.join(click.style(f'[{label}]', fg='cyan') for label in labels)


def indent(
        key: str,
        value: Optional[LoggableValue] = None,
        color: Optional[str] = None,
        level: int = 0,
        labels: Optional[list[str]] = None,
        labels_padding: int = 0) -> str:
    """
    Render a key/value message.

    ``{key}: {value}`` is rendered when there is a value, ``key`` alone
    otherwise. Lines of a multi-line value are placed below the key, one
    level deeper.

    :param color: color of the key.
    :param level: nesting depth, each level adds :py:data:`INDENT` spaces.
    :param labels: prepended to the message as ``[label]``.
    :param labels_padding: width rendered labels are padded to.
    """

    prefix = f'{render_labels(labels).ljust(labels_padding)} ' if labels else ''
    prefix += ' ' * INDENT * level

    if color is not None:
        key = click.style(key, fg=color)

    if value is None:
        return f'{prefix}{key}'

    lines = str(value).splitlines()

    if len(lines) <= 1:
        return f'{prefix}{key}: {value}'

    return '\n'.join([
        f'{prefix}{key}:',
        *(f'{prefix}{" " * INDENT}{line}' for line in lines)])


@dataclasses.dataclass
class LogRecordDetails:
    """ A message and the settings of the logger which emitted it """

    key: str
    value: Optional[LoggableValue] = None
    color: Optional[str] = None

    #: Verbosity or debug level the message requires to be displayed.
    message_verbosity_level: Optional[int] = None
    message_debug_level: Optional[int] = None

    labels: list[str] = dataclasses.field(default_factory=list)
    verbosity_level: int = 0
    debug_level: int = 0
    quiet: bool = False


class ConsoleFilter(logging.Filter):
    """
    Hide messages the emitting logger is not verbose enough to display.

    Warnings and errors always pass, and so do records not emitted by
    :py:class:`Logger`.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        details: Optional[LogRecordDetails] = getattr(record, 'details', None)

        if details is None or record.levelno > logging.INFO:
            return True

        if details.quiet:
            return False

        if record.levelno == logging.DEBUG:
            return details.message_debug_level is None \
                or details.debug_level >= details.message_debug_level

        return details.message_verbosity_level is None \
            or details.verbosity_level >= details.message_verbosity_level


class ConsoleFormatter(logging.Formatter):
    def __init__(self, apply_colors: bool = True) -> None:
        super().__init__('%(message)s')

        self.apply_colors = apply_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        return message if self.apply_colors else remove_color(message)


def _take_over(actual_logger: logging.Logger) -> logging.Logger:
    """ Make a :py:mod:`logging` logger emit everything, and pass it to its parents """

    actual_logger.propagate = True
    actual_logger.setLevel(logging.DEBUG)
    actual_logger.handlers = []

    return actual_logger


class Logger:
    """
    A logger of sutkit messages.

    Combines a :py:class:`logging.Logger` with settings applied to every
    message passing through it: nesting depth, labels, verbosity and debug
    levels, and quietness. Instances are cheap, hypervisors and configuration
    steps get their own with :py:meth:`descend` or :py:meth:`clone`.
    """

    _bootstrap_logger: Optional['Logger'] = None

    def __init__(
            self,
            actual_logger: logging.Logger,
            *,
            shift: int = 0,
            labels: Optional[list[str]] = None,
            labels_padding: int = 0,
            verbosity_level: int = 0,
            debug_level: int = 0,
            quiet: bool = False,
            apply_colors: bool = True) -> None:
        """
        :param actual_logger: the :py:mod:`logging` logger to emit records with.
            Its handlers and level are left untouched.
        :param shift: nesting depth of messages.
        :param labels: prepended to every message.
        :param labels_padding: width rendered labels are padded to.
        :param quiet: if set, only warnings and errors are displayed.
        :param apply_colors: whether console handlers attached by
            :py:meth:`add_console_handler` keep colors.
        """

        self._logger = actual_logger
        self._shift = shift
        self._child_ids = itertools.count()

        self.labels = labels or []
        self.labels_padding = labels_padding

        self.verbosity_level = verbosity_level
        self.debug_level = debug_level
        self.quiet = quiet
        self.apply_colors = apply_colors

    @property
    def labels_span(self) -> int:
        """ Length of rendered labels """
        return len(render_labels(self.labels))

    def _spawn(self, actual_logger: logging.Logger, shift: int) -> 'Logger':
        return Logger(
            actual_logger,
            shift=shift,
            labels=self.labels[:],
            labels_padding=self.labels_padding,
            verbosity_level=self.verbosity_level,
            debug_level=self.debug_level,
            quiet=self.quiet,
            apply_colors=self.apply_colors)

    def clone(self) -> 'Logger':
        """ Create a copy of this logger, its settings may be changed independently """

        return self._spawn(self._logger, self._shift)

    def descend(self, logger_name: Optional[str] = None, extra_shift: int = 1) -> 'Logger':
        """
        Create a logger for nested work.

        Messages are emitted by a child of this logger's :py:mod:`logging`
        logger, and indented by ``extra_shift`` more levels.

        :param logger_name: name of the child, a generic one is used when not set.
        """

        logger_name = logger_name or f'logger{next(self._child_ids)}'

        return self._spawn(
            _take_over(self._logger.getChild(logger_name)),
            self._shift + extra_shift)

    def add_console_handler(self) -> None:
        """ Display messages of this logger, and of its descendants, on standard error output """

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ConsoleFormatter(apply_colors=self.apply_colors))
        handler.addFilter(ConsoleFilter())

        self._logger.addHandler(handler)

    @classmethod
    def create(
            cls,
            actual_logger: Optional[logging.Logger] = None,
            *,
            verbose: int = 0,
            debug: int = 0,
            quiet: bool = False,
            apply_colors: Optional[bool] = None) -> 'Logger':
        """
        Create a root logger, for applications driving hypervisors.

        The ``sutkit`` :py:mod:`logging` logger is taken over - its handlers
        are removed - unless ``actual_logger`` is given. ``SUTKIT_DEBUG``
        overrides ``debug``, and colors follow :py:func:`decide_colorization`
        unless ``apply_colors`` is set.
        """

        return Logger(
            actual_logger or _take_over(logging.getLogger(LOGGER_NAME)),
            verbosity_level=verbose,
            debug_level=debug_level_from_envvar() or debug,
            quiet=quiet,
            apply_colors=decide_colorization() if apply_colors is None else apply_colors)

    def _log(self, level: int, details: LogRecordDetails) -> None:
        details.labels = self.labels
        details.verbosity_level = self.verbosity_level
        details.debug_level = self.debug_level
        details.quiet = self.quiet

        message = indent(
            details.key,
            value=details.value,
            color=details.color,
            level=self._shift,
            labels=self.labels,
            labels_padding=self.labels_padding)

        self._logger.log(level, message, extra={'details': details})

    def info(
            self,
            key: str,
            value: Optional[LoggableValue] = None,
            color: Optional[str] = None) -> None:
        self._log(logging.INFO, LogRecordDetails(key=key, value=value, color=color))

    def verbose(
            self,
            key: str,
            value: Optional[LoggableValue] = None,
            color: Optional[str] = None,
            level: int = 1) -> None:
        self._log(logging.INFO, LogRecordDetails(
            key=key, value=value, color=color, message_verbosity_level=level))

    def debug(
            self,
            key: str,
            value: Optional[LoggableValue] = None,
            color: Optional[str] = None,
            level: int = 1) -> None:
        self._log(logging.DEBUG, LogRecordDetails(
            key=key, value=value, color=color, message_debug_level=level))

    def fail(self, message: str) -> None:
        self._log(logging.ERROR, LogRecordDetails(key='fail', value=message, color='red'))

    @classmethod
    def get_bootstrap_logger(cls) -> 'Logger':
        """
        Logger for hypervisor registration.

        Hypervisors register while their modules are imported, before any
        caller could provide a logger.
        """

        if cls._bootstrap_logger is None:
            cls._bootstrap_logger = Logger.create(
                _take_over(logging.getLogger('_sutkit_bootstrap')))
            cls._bootstrap_logger.add_console_handler()

        return cls._bootstrap_logger
