""" Options altering hypervisor behavior """

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

import sutkit.log


class Options(BaseModel):
    """
    Options recognized by hypervisors and the configuration pipeline.

    The model is frozen: options stay the same for the whole lifecycle of a
    hypervisor. Keys not known to sutkit are kept, so that hypervisors may
    look up their own settings with :py:meth:`get`.
    """

    model_config = ConfigDict(
        frozen=True,
        extra='allow',
        populate_by_name=True,
        arbitrary_types_allowed=True)

    #: Provision hosts right after the hypervisor is created.
    provision: bool = False

    #: Master switch of the configuration pipeline.
    configure: bool = False

    #: Master switch of host validation, given as ``validate``.
    validate_hosts: bool = Field(False, alias='validate')

    root_keys: bool = False
    add_el_extras: bool = False
    disable_iptables: bool = False
    set_env: bool = False
    disable_updates: bool = False
    package_proxy: bool = False

    #: Prefix applied to generated host names.
    host_name_prefix: Optional[str] = None

    #: Phases, e.g. ``configure``, whose per-host work runs in parallel.
    run_in_parallel: list[str] = []

    #: Sink for diagnostic messages.
    logger: Optional[sutkit.log.Logger] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'Options':
        """ Create options from a plain mapping """

        return cls.model_validate(dict(data))

    def get(self, key: str, default: Any = None) -> Any:
        """ Get an option, including those not declared by this model """

        for name, field in type(self).model_fields.items():
            if key in (name, field.alias):
                return getattr(self, name)

        return (self.model_extra or {}).get(key, default)


def run_in_parallel(
        step_options: Optional[Mapping[str, Any]],
        options: Options,
        phase: str) -> bool:
    """
    Decide whether per-host work of a phase should run in parallel.

    :param step_options: options given to the phase itself. A boolean
        ``run_in_parallel`` key wins over everything else.
    :param options: hypervisor options, consulted when the phase has no
        opinion. The phase runs in parallel if listed in
        ``options.run_in_parallel``.
    :param phase: name of the phase, e.g. ``configure``.
    """

    if step_options is not None and isinstance(step_options.get('run_in_parallel'), bool):
        return bool(step_options['run_in_parallel'])

    return phase in options.run_in_parallel
