"""Drone plugin converting .drone.yml streams to unified pipelines."""

from .converter import DroneConverter, DroneParser
from .legacy import LegacyDroneConverter
from .options import build_options
from .variables import replace_vars

__all__ = [
    "DroneParser",
    "DroneConverter",
    "LegacyDroneConverter",
    "build_options",
    "replace_vars",
]
