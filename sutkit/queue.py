"""
Running an action on several hosts at once

A :py:class:`MultiHostTask` runs its :py:meth:`MultiHostTask.run_on_host` in a
worker thread per host, and yields a copy of itself for every host, carrying
the result or the exception the host ended with.
"""

import copy
from collections.abc import Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Generic, Optional, TypeVar

from sutkit.host import Host
from sutkit.log import Logger

if TYPE_CHECKING:
    from typing_extensions import Self


TaskResultT = TypeVar('TaskResultT')


def prepare_loggers(logger: Logger, hosts: Sequence[Host]) -> list[Logger]:
    """
    Create a logger for each host, labeled with the host name.

    Labels are padded to the same width. A single host gets no label.
    """

    loggers = [logger.clone() for _ in hosts]

    if len(hosts) < 2:
        return loggers

    for host, host_logger in zip(hosts, loggers):
        host_logger.labels.append(host.name)

    padding = max(host_logger.labels_span for host_logger in loggers)

    for host_logger in loggers:
        host_logger.labels_padding = padding

    return loggers


class MultiHostTask(Generic[TaskResultT]):
    """
    An action applied to a set of hosts at the same time.

    Every host gets its own worker thread, and all of them are waited for,
    a failure on one host does not interrupt the others.
    """

    #: Used in log messages.
    name = 'task'

    #: Set on outcomes, the host the outcome belongs to.
    host: Optional[Host] = None

    #: Set on outcomes, the value returned by :py:meth:`run_on_host`.
    result: Optional[TaskResultT] = None

    #: Set on outcomes, the exception raised by :py:meth:`run_on_host`.
    exc: Optional[Exception] = None

    def __init__(self, hosts: Sequence[Host], logger: Logger) -> None:
        self.hosts = list(hosts)
        self.logger = logger

    def run_on_host(self, host: Host, logger: Logger) -> TaskResultT:
        """ Perform the action on a single host """

        raise NotImplementedError

    def _outcome(self, host: Host, logger: Logger, future: 'Future[TaskResultT]') -> 'Self':
        outcome = copy.copy(self)

        outcome.host = host
        outcome.logger = logger

        try:
            outcome.result = future.result()

        except Exception as exc:
            outcome.exc = exc

        return outcome

    def go(self) -> Iterator['Self']:
        """
        Run the action on all hosts.

        :yields: an outcome per host, in the order hosts finish.
        """

        if not self.hosts:
            return

        self.logger.debug(f"Run '{self.name}' on {len(self.hosts)} hosts.")

        loggers = prepare_loggers(self.logger, self.hosts)
        labeled = len(self.hosts) > 1

        with ThreadPoolExecutor(max_workers=len(self.hosts)) as executor:
            # Hosts are not hashable, futures map to their positions.
            futures: dict[Future[TaskResultT], int] = {}

            for index, host in enumerate(self.hosts):
                if labeled:
                    loggers[index].info('started', color='cyan')

                futures[executor.submit(self.run_on_host, host, loggers[index])] = index

            for future in as_completed(futures):
                index = futures[future]

                if labeled:
                    loggers[index].info('finished', color='cyan')

                yield self._outcome(self.hosts[index], loggers[index], future)
