import subprocess
from typing import Any

import _pytest.monkeypatch
import pytest

from sutkit.host import Host
from sutkit.hypervisors import create
from sutkit.hypervisors.docker import DEFAULT_IMAGE, Docker
from sutkit.log import Logger
from sutkit.utils import RunError


class FakeDocker:
    """ Stands in for :py:func:`subprocess.run`, answering docker commands """

    def __init__(self, returncode: int = 0) -> None:
        self.commands: list[list[str]] = []
        self.returncode = returncode

    def __call__(self, command: list[str], **kwargs: Any) -> 'subprocess.CompletedProcess[str]':
        self.commands.append(command)

        if command[1] == 'run':
            stdout = f'id-{command[command.index("--name") + 1]}\n'

        elif command[1:3] == ['container', 'inspect']:
            stdout = '10.88.0.2\n'

        else:
            stdout = ''

        return subprocess.CompletedProcess(
            command, self.returncode, stdout=stdout, stderr='no such image\n')


@pytest.fixture(name='fake_docker')
def fixture_fake_docker(monkeypatch: _pytest.monkeypatch.MonkeyPatch) -> FakeDocker:
    fake = FakeDocker()

    monkeypatch.setattr(subprocess, 'run', fake)

    return fake


def test_provision(
        fake_docker: FakeDocker,
        hosts: list[Host],
        root_logger: Logger) -> None:
    hosts[2].hostname = 'proxy.example.com'

    hypervisor = create(
        'docker',
        hosts,
        {'provision': True, 'host_name_prefix': 'test-'},
        logger=root_logger)

    assert isinstance(hypervisor, Docker)
    assert len(fake_docker.commands) == 6

    for host in hosts:
        assert host.vmhostname is not None
        assert host.vmhostname.startswith('test-')
        assert len(host.vmhostname) == 20
        assert host['docker_container_id'] == f'id-{host.vmhostname}'
        assert host.ip == '10.88.0.2'
        assert host.connection_address() == host.vmhostname

    assert hosts[0].hostname == hosts[0].vmhostname
    assert hosts[2].hostname == 'proxy.example.com'

    run_command = fake_docker.commands[0]

    assert run_command[:3] == ['docker', 'run', '--detach']
    assert run_command[-3:] == [DEFAULT_IMAGE, 'sleep', 'infinity']


def test_image(
        fake_docker: FakeDocker,
        root_logger: Logger) -> None:
    hosts = [Host(name='client', extra={'image': 'centos:stream9'}), Host(name='server')]

    create('docker', hosts, {'provision': True, 'docker_image': 'alpine'}, logger=root_logger)

    images = [command[-3] for command in fake_docker.commands if command[1] == 'run']

    assert images == ['centos:stream9', 'alpine']


def test_cleanup(
        fake_docker: FakeDocker,
        hosts: list[Host],
        root_logger: Logger) -> None:
    hypervisor = create('docker', hosts, {'provision': True}, logger=root_logger)

    container_ids = [host['docker_container_id'] for host in hosts]
    fake_docker.commands.clear()

    hypervisor.cleanup()

    assert fake_docker.commands == [
        ['docker', 'container', 'rm', '--force', container_id]
        for container_id in container_ids
        ]

    for host in hosts:
        assert host['docker_container_id'] is None

    # Nothing left to remove
    fake_docker.commands.clear()
    hypervisor.cleanup()

    assert fake_docker.commands == []


def test_provision_failure(
        fake_docker: FakeDocker,
        hosts: list[Host],
        root_logger: Logger) -> None:
    fake_docker.returncode = 125

    with pytest.raises(RunError) as excinfo:
        create('docker', hosts, {'provision': True}, logger=root_logger)

    assert excinfo.value.returncode == 125
    assert excinfo.value.stderr == 'no such image\n'
    assert 'docker_container_id' not in hosts[0]
