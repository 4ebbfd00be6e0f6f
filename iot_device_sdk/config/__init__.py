"""Configuration for device and module clients."""

from .settings import ClientConfig
from . import constants

__all__ = ["ClientConfig", "constants"]
