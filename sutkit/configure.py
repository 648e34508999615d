"""
Host configuration pipeline

Runs the configuration steps a hypervisor applies to its hosts once they are
provisioned. The time synchronization runs per host, sequentially or in
parallel; the remaining steps are global, each gated by its own option and
always executed in a fixed order.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional

import fmf.utils

import sutkit.log
import sutkit.options
import sutkit.queue
import sutkit.utils
from sutkit.host import Host
from sutkit.options import Options
from sutkit.steps import HostSteps

#: Global steps, in the order they are applied. Each item is a pair of the
#: option enabling the step, and the name of :py:class:`HostSteps` method
#: implementing it.
GLOBAL_STEPS: tuple[tuple[str, str], ...] = (
    ('root_keys', 'sync_root_keys'),
    ('add_el_extras', 'add_el_extras'),
    ('disable_iptables', 'disable_iptables'),
    ('set_env', 'set_env'),
    ('disable_updates', 'disable_updates'),
    )


class TimesyncTask(sutkit.queue.MultiHostTask[None]):
    """ Synchronize time on a set of hosts at once """

    name = 'timesync'

    def __init__(
            self,
            hosts: list[Host],
            steps: HostSteps,
            options: Options,
            logger: sutkit.log.Logger) -> None:
        super().__init__(hosts, logger)

        self.steps = steps
        self.options = options

    def run_on_host(self, host: Host, logger: sutkit.log.Logger) -> None:
        logger.verbose('timesync', host.name, color='green', level=2)

        self.steps.timesync(host, self.options)


class ConfigurationPipeline:
    """
    Configure provisioned hosts.

    :param hosts: hosts to configure.
    :param options: hypervisor options, enabling individual steps.
    :param steps: implementation of configuration steps.
    :param logger: used for logging.
    """

    def __init__(
            self,
            hosts: Sequence[Host],
            options: Options,
            steps: HostSteps,
            logger: sutkit.log.Logger) -> None:
        self.hosts = list(hosts)
        self.options = options
        self.steps = steps
        self._logger = logger

    def _timesync_sequential(self, hosts: list[Host]) -> None:
        for host in hosts:
            self._logger.verbose('timesync', host.name, color='green', level=2)

            self.steps.timesync(host, self.options)

    def _timesync_parallel(self, hosts: list[Host]) -> None:
        task = TimesyncTask(hosts, self.steps, self.options, self._logger)

        failed: list[TimesyncTask] = []

        for outcome in task.go():
            if outcome.exc:
                outcome.logger.fail(str(outcome.exc))

                failed.append(outcome)

        if not failed:
            return

        # Report failures in the order of hosts, not in the order they finished.
        positions = {id(host): index for index, host in enumerate(hosts)}
        failed.sort(key=lambda outcome: positions[id(outcome.host)])

        causes = [outcome.exc for outcome in failed if outcome.exc is not None]
        failed_names = fmf.utils.listed([str(outcome.host) for outcome in failed], quote="'")

        raise sutkit.utils.ConfigureError(
            f'Time synchronization failed on {failed_names}.',
            causes=causes) from causes[0]

    def run(self, step_options: Optional[Mapping[str, Any]] = None) -> None:
        """
        Run the configuration steps.

        Nothing happens unless the ``configure`` option is set.

        :param step_options: options given to this particular run. The only
            key recognized is ``run_in_parallel``, overriding the
            ``run_in_parallel`` hypervisor option.
        :raises sutkit.utils.ConfigureError: when time synchronization failed
            on one or more hosts in parallel mode.
        """

        if not self.options.configure:
            return

        timesync_hosts = [host for host in self.hosts if host.timesync]

        if timesync_hosts:
            if sutkit.options.run_in_parallel(step_options, self.options, 'configure'):
                self._logger.debug(
                    f"Synchronize time on {fmf.utils.listed(timesync_hosts, 'host')}"
                    " in parallel.")

                self._timesync_parallel(timesync_hosts)

            else:
                self._timesync_sequential(timesync_hosts)

        for option, method_name in GLOBAL_STEPS:
            if not self.options.get(option):
                continue

            self._logger.verbose('step', method_name, color='green')

            step: Callable[[list[Host], Options], None] = getattr(self.steps, method_name)
            step(self.hosts, self.options)
