"""
Discovery of hypervisor plugins

Hypervisors beyond the built-in ones are found in three places, explored in
this order:

* modules of sutkit's own plugin packages, :py:data:`BUILTIN_PLUGIN_PACKAGES`,
* modules dropped into directories listed in the ``SUTKIT_PLUGINS``
  environment variable,
* packages hooked to the ``sutkit.hypervisor`` entry point group.

Importing a plugin is all it takes, plugins register themselves with
:py:func:`sutkit.hypervisors.provides_hypervisor`.
"""

import importlib
import os
import pkgutil
import sys
from collections.abc import Iterator
from importlib.metadata import entry_points
from pathlib import Path
from types import ModuleType
from typing import Generic, Optional, TypeVar

import sutkit.utils
from sutkit.log import Logger

ENTRY_POINT_GROUP = 'sutkit.hypervisor'
PLUGINS_ENVVAR = 'SUTKIT_PLUGINS'

#: Packages bundled with sutkit which hold plugins, with their directories.
BUILTIN_PLUGIN_PACKAGES: dict[str, Path] = {
    'sutkit.hypervisors': Path(__file__).resolve().parent / 'hypervisors',
    }

# Set once all plugin locations have been explored
ALREADY_EXPLORED = False


def discover(path: Path) -> Iterator[str]:
    """ Discover modules, not packages, in the given directory """

    for _, name, package in pkgutil.iter_modules([str(path)]):
        if not package:
            yield name


def _plugin_directories() -> list[Path]:
    return [
        Path(os.path.expandvars(os.path.expanduser(directory))).resolve()
        for directory in os.environ.get(PLUGINS_ENVVAR, '').split(os.pathsep)
        if directory
        ]


def explore(logger: Logger, again: bool = False) -> None:
    """
    Import plugins from all plugin locations.

    Locations are explored just once, unless ``again`` is set.

    :raises sutkit.utils.GeneralError: when a plugin cannot be imported.
    """

    global ALREADY_EXPLORED

    if ALREADY_EXPLORED and not again:
        return

    for package, directory in BUILTIN_PLUGIN_PACKAGES.items():
        logger.debug(f"Import plugins from the '{package}' package.")

        for module in discover(directory):
            import_module(module=f'{package}.{module}', logger=logger.descend())

    directories = _plugin_directories()

    if not directories:
        logger.debug(f"No plugin directories set in '{PLUGINS_ENVVAR}'.")

    for directory in directories:
        logger.debug(f"Import plugins from the '{directory}' directory.")

        if str(directory) not in sys.path:
            sys.path.insert(0, str(directory))

        for module in discover(directory):
            import_module(module=module, path=directory, logger=logger.descend())

    for entry_point in entry_points(group=ENTRY_POINT_GROUP):
        logger.debug(f"Load plugin '{entry_point.name}' ({entry_point.value}).")

        try:
            entry_point.load()

        except Exception as exc:
            raise sutkit.utils.GeneralError(
                f"Failed to load plugin '{entry_point.name}' ({entry_point.value}).") from exc

    ALREADY_EXPLORED = True


def import_module(
        *,
        module: str,
        path: Optional[Path] = None,
        logger: Logger) -> ModuleType:
    """
    Import a module, unless it has been imported already.

    :param module: name of the module, dotted names of submodules are accepted.
    :param path: directory the module is imported from, mentioned in the error
        message.
    :raises sutkit.utils.GeneralError: when the import fails.
    """

    if module in sys.modules:
        logger.debug(f"Module '{module}' already imported.")

        return sys.modules[module]

    try:
        imported = importlib.import_module(module)

    except ImportError as exc:
        origin = f" from '{path}'" if path is not None else ''

        raise sutkit.utils.GeneralError(
            f"Failed to import the '{module}' module{origin}.") from exc

    logger.debug(f"Imported the '{module}' module.")

    return imported


RegisterableT = TypeVar('RegisterableT')


class PluginRegistry(Generic[RegisterableT]):
    """ Plugins of a shared purpose, by their ids """

    def __init__(self) -> None:
        self._plugins: dict[str, RegisterableT] = {}

    def register_plugin(
            self,
            *,
            plugin_id: str,
            plugin: RegisterableT,
            logger: Logger) -> None:
        """
        Register a plugin under the given id.

        :raises sutkit.utils.GeneralError: when the id is already taken by
            a different plugin.
        """

        current = self._plugins.get(plugin_id)

        if current is not None and current is not plugin:
            raise sutkit.utils.GeneralError(
                f"Plugin '{plugin}' collides with plugin '{current}'"
                f" already registered as '{plugin_id}'.")

        self._plugins[plugin_id] = plugin

        logger.debug(f"Registered plugin '{plugin}' as '{plugin_id}'.")

    def unregister_plugin(self, plugin_id: str) -> None:
        self._plugins.pop(plugin_id, None)

    def get_plugin(self, plugin_id: str) -> Optional[RegisterableT]:
        return self._plugins.get(plugin_id)
