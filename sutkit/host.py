""" Systems under test """

import dataclasses
from collections.abc import Iterator
from typing import Any, Optional

#: Host fields that may be used to reach a host over SSH.
CONNECTION_ATTRIBUTES: tuple[str, ...] = ('ip', 'vmhostname', 'hostname')


@dataclasses.dataclass
class Host:
    """
    A system under test.

    Hosts are owned by the caller. Hypervisors fill in network identity when
    provisioning, the dispatcher sets :py:attr:`ssh_connection_preference`,
    and configuration steps read flags like :py:attr:`timesync`.

    Besides attribute access, hosts support item access, ``host['timesync']``,
    and any key that is not a field is stored in :py:attr:`extra`.
    """

    name: str

    #: IP address of the host.
    ip: Optional[str] = None

    #: Name assigned to the host by the hypervisor.
    vmhostname: Optional[str] = None

    #: Resolvable hostname of the host.
    hostname: Optional[str] = None

    #: Order in which identity fields are tried when connecting.
    ssh_connection_preference: Optional[list[str]] = None

    #: Whether time on the host should be synchronized.
    timesync: bool = False

    extra: dict[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def _field_names(cls) -> list[str]:
        return [field.name for field in dataclasses.fields(cls) if field.name != 'extra']

    def __getitem__(self, key: str) -> Any:
        if key in self._field_names():
            return getattr(self, key)

        return self.extra[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key in self._field_names():
            setattr(self, key, value)

        else:
            self.extra[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._field_names() or key in self.extra

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]

        except KeyError:
            return default

    def keys(self) -> Iterator[str]:
        yield from self._field_names()
        yield from self.extra.keys()

    def connection_address(self) -> Optional[str]:
        """
        Find the address to use for connecting to the host.

        Identity fields are tried in the order given by
        :py:attr:`ssh_connection_preference`, or by
        :py:data:`CONNECTION_ATTRIBUTES` when it has not been set yet.

        :returns: the first non-empty identity field, or ``None``.
        """

        for attribute in self.ssh_connection_preference or CONNECTION_ATTRIBUTES:
            value = getattr(self, attribute)

            if value:
                return value

        return None

    def __str__(self) -> str:
        return self.name
