""" Errors, command execution and other helpers shared across sutkit """

import dataclasses
import shlex
import subprocess
from collections.abc import Sequence
from typing import Any, Optional, Union

import sutkit.log


#
# Exceptions
#

class GeneralError(Exception):
    """ General error """

    def __init__(
            self,
            message: str,
            causes: Optional[list[Exception]] = None,
            *args: Any,
            **kwargs: Any) -> None:
        """
        General error.

        :param message: error message.
        :param causes: exceptions that caused this one, one per failed host
            when configuration runs in parallel. ``__cause__`` holds just
            the first of them.
        """

        super().__init__(message, *args, **kwargs)

        self.message = message
        self.causes = causes or []


class InvalidBackendError(GeneralError):
    """ Hypervisor type could not be resolved to an implementation """

    def __init__(self, backend_type: str, *args: Any, **kwargs: Any) -> None:
        super().__init__(f"Invalid hypervisor: {backend_type}", *args, **kwargs)

        self.backend_type = backend_type


class ContractViolationError(GeneralError):
    """ Hypervisor does not honor the connection preference contract """

    def __init__(
            self,
            message: str,
            expected: Sequence[str],
            actual: Any,
            *args: Any,
            **kwargs: Any) -> None:
        super().__init__(message, *args, **kwargs)

        self.expected = list(expected)
        self.actual = actual


class ConfigureError(GeneralError):
    """ Host configuration failed """


class RunError(GeneralError):
    """ Command execution error """

    def __init__(
            self,
            message: str,
            command: 'Command',
            returncode: int,
            stdout: Optional[str] = None,
            stderr: Optional[str] = None,
            *args: Any,
            **kwargs: Any) -> None:
        super().__init__(message, *args, **kwargs)

        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


#
# Commands
#

@dataclasses.dataclass(frozen=True)
class CommandOutput:
    stdout: Optional[str]
    stderr: Optional[str]


class Command:
    """ A command with its arguments. """

    def __init__(self, *elements: str) -> None:
        self._command = elements

    def __str__(self) -> str:
        return self.to_element()

    def __add__(self, other: Union['Command', list[str]]) -> 'Command':
        if isinstance(other, Command):
            return Command(*self._command, *other._command)

        return Command(*self._command, *other)

    def to_element(self) -> str:
        """ Convert a command to a shell command line element """

        return ' '.join(shlex.quote(s) for s in self._command)

    def to_popen(self) -> list[str]:
        """ Convert a command to form accepted by :py:mod:`subprocess` """

        return list(self._command)

    def run(
            self,
            *,
            message: Optional[str] = None,
            timeout: Optional[int] = None,
            logger: sutkit.log.Logger) -> CommandOutput:
        """
        Run command, give message, handle errors.

        :param message: if set, it would be logged for more friendly logging.
        :param timeout: if set, command would be interrupted, if still running,
            after this many seconds.
        :param logger: logger to use for logging.
        :returns: command output, bundled in a :py:class:`CommandOutput` tuple.
        :raises RunError: when the command cannot be started, or exits with
            a non-zero code.
        """

        if message:
            logger.verbose(message, level=2)

        logger.debug(f'Run command: {self!s}', level=2)

        try:
            process = subprocess.run(
                self.to_popen(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False)

        except FileNotFoundError as exc:
            raise RunError(f"File '{exc.filename}' not found.", self, 127) from exc

        for name, output in (('out', process.stdout), ('err', process.stderr)):
            for line in (output or '').splitlines():
                logger.debug(name, line, level=3)

        if process.returncode != 0:
            logger.debug(f"Command returned '{process.returncode}'.", level=3)

            raise RunError(
                f"Command '{self!s}' returned {process.returncode}.",
                self,
                process.returncode,
                stdout=process.stdout,
                stderr=process.stderr)

        return CommandOutput(process.stdout, process.stderr)
