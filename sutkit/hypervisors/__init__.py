"""
Hypervisors provisioning systems under test

A hypervisor is the backend responsible for bringing hosts to life - running
containers, starting virtual machines, asking a cloud for instances - and for
tearing them down. Every hypervisor implements the same small interface,
:py:class:`Hypervisor`, and registers itself under a type name with
:py:func:`provides_hypervisor`. :py:func:`create` then turns a type name into a
ready-to-use hypervisor instance.
"""

import logging
import random
import string
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional, TypeVar, Union

import fmf.utils

import sutkit.log
import sutkit.plugins
import sutkit.utils
from sutkit.configure import ConfigurationPipeline
from sutkit.host import CONNECTION_ATTRIBUTES, Host
from sutkit.options import Options
from sutkit.plugins import PluginRegistry
from sutkit.steps import HostSteps

#: Connection preference every hypervisor must honor, in its default order.
DEFAULT_CONNECTION_PREFERENCE: list[str] = list(CONNECTION_ATTRIBUTES)

#: Characters used for generated host names: letters ``a``-``z``, digits ``0``-``9``.
CHARMAP: str = string.ascii_lowercase + string.digits

#: Length of the random part of generated host names.
HOST_NAME_LENGTH = 15

# The first character is picked from the first 25 characters only, ``z`` and
# digits never start a generated name.
HOST_NAME_FIRST_CHARMAP: str = CHARMAP[:25]

CONTRACT_VIOLATION_MESSAGE = """
Hypervisor's overriding connection_preference method is not matching the API.

Make sure your hypervisor's connection_preference returns a list
containing the following elements in any order you prefer:
{expected}

The list must be a reordering of these elements, not a redefinition.
Please check sutkit.hypervisors.Hypervisor.connection_preference for an example.
""".strip()


def generate_host_name(
        prefix: Optional[str] = None,
        *,
        rng: Optional[random.Random] = None) -> str:
    """
    Generate a random host name.

    The name is composed of :py:data:`HOST_NAME_LENGTH` letters and digits,
    the first one always being a letter between ``a`` and ``y``. No attempt
    is made to make names unique.

    :param prefix: if set, prepended to the generated name.
    :param rng: random number generator to use, the :py:mod:`random`
        module by default.
    """

    choice = rng.choice if rng is not None else random.choice

    name = choice(HOST_NAME_FIRST_CHARMAP) \
        + ''.join(choice(CHARMAP) for _ in range(HOST_NAME_LENGTH - 1))

    if prefix:
        return prefix + name

    return name


def hypervisor_class_name(hypervisor_type: str) -> str:
    """ Conventional class name of a hypervisor type, ``my_cloud`` -> ``MyCloud`` """

    return ''.join(part.capitalize() for part in hypervisor_type.split('_'))


class Hypervisor:
    """
    Default hypervisor, provisioning nothing.

    A base class of all hypervisors. It defines the interface every hypervisor
    implements - :py:meth:`provision`, :py:meth:`cleanup`, :py:meth:`configure`,
    :py:meth:`validate` and :py:meth:`connection_preference` - and serves as the
    identity hypervisor for hosts that already exist. Subclasses override
    whatever their infrastructure needs.
    """

    def __init__(
            self,
            hosts: Sequence[Host],
            options: Options,
            *,
            logger: sutkit.log.Logger,
            steps: Optional[HostSteps] = None) -> None:
        self.hosts = list(hosts)
        self.options = options

        self._logger = logger
        self.steps = steps or HostSteps(logger.descend(logger_name='steps'))

    def __repr__(self) -> str:
        return f'<{type(self).__name__}: {fmf.utils.listed(self.hosts, "host")}>'

    def provision(self) -> None:
        """ Provision hosts. Does nothing by default. """

        self._logger.debug('Doing nothing to provision hosts.')

    def cleanup(self) -> None:
        """ Clean up hosts. Does nothing by default. """

        self._logger.debug('Doing nothing to clean up hosts.')

    def connection_preference(self) -> list[str]:
        """
        Order in which host identity fields are tried when connecting.

        Hypervisors may override this method to reorder the fields, but the
        returned list must always contain exactly ``ip``, ``vmhostname`` and
        ``hostname``.
        """

        return DEFAULT_CONNECTION_PREFERENCE[:]

    def proxy_package_manager(self) -> None:
        """
        Proxy package managers on hosts.

        Runs before validation and configuration, when the ``package_proxy``
        option is set.
        """

        if self.options.package_proxy:
            self.steps.package_proxy(self.hosts, self.options)

    def configure(self, step_options: Optional[Mapping[str, Any]] = None) -> None:
        """
        Configure hosts to make them ready for testing.

        See :py:class:`sutkit.configure.ConfigurationPipeline` for the steps
        taken. Nothing happens unless the ``configure`` option is set.

        :param step_options: options of this configuration run, e.g.
            ``{'run_in_parallel': True}``.
        """

        ConfigurationPipeline(
            self.hosts,
            self.options,
            self.steps,
            self._logger.descend(logger_name='configure')).run(step_options)

    def validate(self) -> None:
        """ Make sure hosts meet requirements of test hosts """

        if self.options.validate_hosts:
            self.steps.validate_host(self.hosts, self.options)

    def generate_host_name(self) -> str:
        """ Generate a random host name, prefixed by the ``host_name_prefix`` option """

        return generate_host_name(self.options.host_name_prefix)


HypervisorClass = type[Hypervisor]
HypervisorClassT = TypeVar('HypervisorClassT', bound=HypervisorClass)

#: Hypervisors known to sutkit, by their type names.
HYPERVISORS: PluginRegistry[HypervisorClass] = PluginRegistry()


def provides_hypervisor(name: str) -> Callable[[HypervisorClassT], HypervisorClassT]:
    """
    A class decorator to register a hypervisor under the given type name.

    .. code-block:: python

       @sutkit.hypervisors.provides_hypervisor('my_cloud')
       class MyCloud(sutkit.hypervisors.Hypervisor):
           ...

    :param name: type name of the hypervisor, as given to :py:func:`create`.
    """

    def _provides(cls: HypervisorClassT) -> HypervisorClassT:
        HYPERVISORS.register_plugin(
            plugin_id=name,
            plugin=cls,
            logger=sutkit.log.Logger.get_bootstrap_logger())

        return cls

    return _provides


provides_hypervisor('default')(Hypervisor)
provides_hypervisor('none')(Hypervisor)


def _import_hypervisor(hypervisor_type: str, logger: sutkit.log.Logger) -> None:
    """
    Import ``sutkit.hypervisors.<type>`` and register the hypervisor it provides.

    A module decorating its class with :py:func:`provides_hypervisor` needs
    nothing else. Otherwise the class is looked up by its conventional name,
    see :py:func:`hypervisor_class_name`.
    """

    module = sutkit.plugins.import_module(
        module=f'sutkit.hypervisors.{hypervisor_type}',
        logger=logger)

    if HYPERVISORS.get_plugin(hypervisor_type) is not None:
        return

    class_name = hypervisor_class_name(hypervisor_type)
    hypervisor_class = getattr(module, class_name, None)

    if not isinstance(hypervisor_class, type) or not issubclass(hypervisor_class, Hypervisor):
        logger.debug(f"Module '{module.__name__}' does not define hypervisor '{class_name}'.")
        return

    HYPERVISORS.register_plugin(
        plugin_id=hypervisor_type,
        plugin=hypervisor_class,
        logger=logger)


def find_hypervisor(hypervisor_type: str, logger: sutkit.log.Logger) -> HypervisorClass:
    """
    Find the hypervisor class of the given type.

    Registered hypervisors are consulted first. Unknown types trigger plugin
    discovery, followed by an attempt to import ``sutkit.hypervisors.<type>``
    and to find a hypervisor class named after the type, ``MyCloud`` for
    ``my_cloud``.

    :raises sutkit.utils.InvalidBackendError: when no hypervisor of the given
        type exists.
    """

    if not isinstance(hypervisor_type, str) or not hypervisor_type:
        raise sutkit.utils.InvalidBackendError(repr(hypervisor_type))

    hypervisor_class = HYPERVISORS.get_plugin(hypervisor_type)

    if hypervisor_class is not None:
        return hypervisor_class

    logger.debug(f"Hypervisor '{hypervisor_type}' not registered, exploring plugins.")

    try:
        sutkit.plugins.explore(logger.descend())

        if HYPERVISORS.get_plugin(hypervisor_type) is None and hypervisor_type.isidentifier():
            _import_hypervisor(hypervisor_type, logger.descend())

    except sutkit.utils.GeneralError as exc:
        raise sutkit.utils.InvalidBackendError(hypervisor_type) from exc

    hypervisor_class = HYPERVISORS.get_plugin(hypervisor_type)

    if hypervisor_class is None:
        raise sutkit.utils.InvalidBackendError(hypervisor_type)

    return hypervisor_class


def _is_reordered_default(preference: Any) -> bool:
    if not isinstance(preference, (list, tuple)):
        return False

    # Elements of any other type are foreign.
    if not all(isinstance(item, str) for item in preference):
        return False

    return sorted(preference) == sorted(DEFAULT_CONNECTION_PREFERENCE)


def set_ssh_connection_preference(hosts: Sequence[Host], hypervisor: Hypervisor) -> None:
    """
    Apply hypervisor's connection preference to hosts.

    The preference must be a reordering of :py:data:`DEFAULT_CONNECTION_PREFERENCE`.
    Every host receives its own copy of the very same list.

    :raises sutkit.utils.ContractViolationError: when the preference is not a
        reordering of the default one. No host is modified in such case.
    """

    preference = hypervisor.connection_preference()

    if not _is_reordered_default(preference):
        raise sutkit.utils.ContractViolationError(
            CONTRACT_VIOLATION_MESSAGE.format(
                expected=', '.join(f'"{item}"' for item in DEFAULT_CONNECTION_PREFERENCE)),
            expected=DEFAULT_CONNECTION_PREFERENCE,
            actual=preference)

    for host in hosts:
        host['ssh_connection_preference'] = list(preference)


def create(
        hypervisor_type: str,
        hosts: Sequence[Host],
        options: Union[Options, Mapping[str, Any]],
        *,
        logger: Optional[sutkit.log.Logger] = None,
        steps: Optional[HostSteps] = None) -> Hypervisor:
    """
    Create a hypervisor, and provision hosts with it if requested.

    :param hypervisor_type: type of the hypervisor, e.g. ``docker``, ``noop``,
        ``default`` or a name of a custom hypervisor.
    :param hosts: hosts the hypervisor will be responsible for.
    :param options: options altering the hypervisor behavior, an
        :py:class:`Options` instance or a plain mapping.
    :param logger: used for logging. If not set, ``logger`` option is used.
        When even that one is missing, the ``sutkit`` logger is used as the
        application configured it, its handlers and level are left intact.
    :param steps: implementation of configuration steps. If not set, steps
        doing nothing are used.
    :returns: the hypervisor instance. Its lifetime, including
        :py:meth:`Hypervisor.cleanup`, is in the hands of the caller.
    :raises sutkit.utils.InvalidBackendError: when the hypervisor type is
        unknown.
    :raises sutkit.utils.ContractViolationError: when the hypervisor does not
        honor the connection preference contract.
    """

    if not isinstance(options, Options):
        options = Options.from_mapping(options)

    logger = logger \
        or options.logger \
        or sutkit.log.Logger(logging.getLogger(sutkit.log.LOGGER_NAME))

    logger.info(f'found some {hypervisor_type} boxes to create')

    hypervisor_class = find_hypervisor(hypervisor_type, logger)

    hypervisor = hypervisor_class(
        hosts,
        options,
        logger=logger.descend(logger_name=hypervisor_type),
        steps=steps)

    set_ssh_connection_preference(hypervisor.hosts, hypervisor)

    if options.provision:
        hypervisor.provision()

    return hypervisor


# Built-in hypervisors register themselves when imported.
from sutkit.hypervisors import docker, noop  # noqa: E402,F401,I001
