from sutkit.hypervisors import Hypervisor, provides_hypervisor


@provides_hypervisor('noop')
class Noop(Hypervisor):
    """
    Pretend to provision hosts.

    Useful for dry runs and for hosts reachable under their own names: no
    machine is started, hosts only get their missing network identity filled
    in from their names.
    """

    def provision(self) -> None:
        for host in self.hosts:
            host.hostname = host.hostname or host.name
            host.vmhostname = host.vmhostname or host.name
            host.ip = host.ip or host.name

            self._logger.info('provision', host.name, color='green')

    def cleanup(self) -> None:
        for host in self.hosts:
            self._logger.info('cleanup', host.name, color='green')
