"""
Host configuration steps

The actual work of configuring hosts - synchronizing time, distributing keys,
disabling firewalls and so on - is not done by sutkit itself. It is delegated
to a :py:class:`HostSteps` instance given to the hypervisor, and sutkit only
decides whether, in what order and with what parallelism the steps run.
"""

from collections.abc import Sequence

import sutkit.log
from sutkit.host import Host
from sutkit.options import Options


class HostSteps:
    """
    Configuration steps applied to hosts.

    A base class for step implementations. Methods of this class do nothing
    beyond logging, deployments are expected to subclass it and override the
    steps they need. Exceptions raised by steps are propagated to the caller
    of the hypervisor method that invoked them.
    """

    def __init__(self, logger: sutkit.log.Logger) -> None:
        self._logger = logger

    def _nothing(self, action: str, hosts: Sequence[Host]) -> None:
        self._logger.debug(
            f"Doing nothing to {action} on {', '.join(host.name for host in hosts)}.")

    def timesync(self, host: Host, options: Options) -> None:
        """ Synchronize time on a single host """
        self._nothing('synchronize time', [host])

    def sync_root_keys(self, hosts: Sequence[Host], options: Options) -> None:
        """ Distribute root SSH keys across hosts """
        self._nothing('sync root keys', hosts)

    def add_el_extras(self, hosts: Sequence[Host], options: Options) -> None:
        """ Install extra packages for EL-family hosts """
        self._nothing('add EL extras', hosts)

    def disable_iptables(self, hosts: Sequence[Host], options: Options) -> None:
        """ Disable host firewall rules """
        self._nothing('disable iptables', hosts)

    def set_env(self, hosts: Sequence[Host], options: Options) -> None:
        """ Inject environment variables """
        self._nothing('set environment', hosts)

    def disable_updates(self, hosts: Sequence[Host], options: Options) -> None:
        """ Disable OS update mechanisms """
        self._nothing('disable updates', hosts)

    def package_proxy(self, hosts: Sequence[Host], options: Options) -> None:
        """ Point package managers to a proxy """
        self._nothing('set up package proxy', hosts)

    def validate_host(self, hosts: Sequence[Host], options: Options) -> None:
        """ Make sure hosts meet requirements of test hosts """
        self._nothing('validate', hosts)
