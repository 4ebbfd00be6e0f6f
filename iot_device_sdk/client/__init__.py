"""Device and module clients."""

from .device import DeviceClient
from .features import BackgroundTasks, FeatureState, FeatureToggle
from .internal import InternalClient
from .module import ModuleClient

__all__ = [
    "DeviceClient",
    "ModuleClient",
    "InternalClient",
    "FeatureToggle",
    "FeatureState",
    "BackgroundTasks",
]
