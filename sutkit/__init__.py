""" Provision and configure systems under test """

import importlib.metadata

__version__ = importlib.metadata.version(__name__)

__all__ = [
    'Host',
    'HostSteps',
    'Hypervisor',
    'Logger',
    'Options',
    'create',
    ]

from sutkit.host import Host
from sutkit.hypervisors import Hypervisor, create
from sutkit.log import Logger
from sutkit.options import Options
from sutkit.steps import HostSteps
