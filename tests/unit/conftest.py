import threading
from collections.abc import Sequence
from typing import Optional

import pytest

from sutkit.host import Host
from sutkit.log import Logger
from sutkit.options import Options
from sutkit.steps import HostSteps


class RecordingSteps(HostSteps):
    """
    Configuration steps recording their invocations.

    Every invocation is stored as a ``(step name, host names)`` pair. Steps
    listed in ``failing`` raise :py:class:`RuntimeError`, for time
    synchronization the failure may be limited to given hosts.
    """

    def __init__(
            self,
            logger: Logger,
            failing: Optional[dict[str, Optional[Sequence[str]]]] = None) -> None:
        super().__init__(logger)

        self.calls: list[tuple[str, list[str]]] = []
        self.failing = failing or {}

        self._lock = threading.Lock()

    def _record(self, step: str, hosts: Sequence[Host]) -> None:
        names = [host.name for host in hosts]

        with self._lock:
            self.calls.append((step, names))

        if step not in self.failing:
            return

        failing_hosts = self.failing[step]

        if failing_hosts is None or any(name in failing_hosts for name in names):
            raise RuntimeError(f'{step} failed on {", ".join(names)}')

    @property
    def steps(self) -> list[str]:
        return [step for step, _ in self.calls]

    def timesync(self, host: Host, options: Options) -> None:
        self._record('timesync', [host])

    def sync_root_keys(self, hosts: Sequence[Host], options: Options) -> None:
        self._record('sync_root_keys', hosts)

    def add_el_extras(self, hosts: Sequence[Host], options: Options) -> None:
        self._record('add_el_extras', hosts)

    def disable_iptables(self, hosts: Sequence[Host], options: Options) -> None:
        self._record('disable_iptables', hosts)

    def set_env(self, hosts: Sequence[Host], options: Options) -> None:
        self._record('set_env', hosts)

    def disable_updates(self, hosts: Sequence[Host], options: Options) -> None:
        self._record('disable_updates', hosts)

    def package_proxy(self, hosts: Sequence[Host], options: Options) -> None:
        self._record('package_proxy', hosts)

    def validate_host(self, hosts: Sequence[Host], options: Options) -> None:
        self._record('validate_host', hosts)


@pytest.fixture(name='hosts')
def fixture_hosts() -> list[Host]:
    return [
        Host(name='client', timesync=True),
        Host(name='server', timesync=True),
        Host(name='proxy', timesync=True),
        ]


@pytest.fixture(name='steps')
def fixture_steps(root_logger: Logger) -> RecordingSteps:
    return RecordingSteps(root_logger)
