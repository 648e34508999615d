from typing import Optional

from sutkit.host import Host
from sutkit.hypervisors import Hypervisor, provides_hypervisor
from sutkit.utils import Command

DEFAULT_IMAGE = 'fedora'

#: Command keeping containers alive until removed.
DEFAULT_CONTAINER_COMMAND = ('sleep', 'infinity')


@provides_hypervisor('docker')
class Docker(Hypervisor):
    """
    Provision hosts as Docker containers.

    Every host becomes a detached container. The image is taken from the
    host's ``image`` key, falling back to the ``docker_image`` option and
    :py:data:`DEFAULT_IMAGE`.
    """

    def connection_preference(self) -> list[str]:
        # Container names resolve on the docker network.
        return ['vmhostname', 'ip', 'hostname']

    def docker(self, command: Command, message: Optional[str] = None) -> str:
        """ Run a docker command, return its standard output """

        output = (Command('docker') + command).run(message=message, logger=self._logger)

        return (output.stdout or '').strip()

    def _image(self, host: Host) -> str:
        return str(host.get('image') or self.options.get('docker_image') or DEFAULT_IMAGE)

    def _start_container(self, host: Host) -> None:
        name = self.generate_host_name()
        image = self._image(host)

        self._logger.verbose('name', name, color='green')
        self._logger.verbose('image', image, color='green')

        container_id = self.docker(
            Command(
                'run', '--detach',
                '--name', name,
                '--hostname', name,
                image,
                *DEFAULT_CONTAINER_COMMAND),
            message=f"Start container for '{host.name}' from image '{image}'.")

        host['docker_container_id'] = container_id
        host.vmhostname = name
        host.hostname = host.hostname or name
        host.ip = self.docker(Command(
            'container', 'inspect',
            '--format', '{{range .NetworkSettings.Networks}}{{.IPAddress}}{{end}}',
            container_id)) or None

        self._logger.info('provision', f'{host.name} ({host.ip or name})', color='green')

    def provision(self) -> None:
        for host in self.hosts:
            self._start_container(host)

    def cleanup(self) -> None:
        for host in self.hosts:
            container_id = host.get('docker_container_id')

            if not container_id:
                continue

            self._logger.info('cleanup', host.name, color='green')

            self.docker(
                Command('container', 'rm', '--force', container_id),
                message=f"Remove container '{container_id}'.")

            host['docker_container_id'] = None
