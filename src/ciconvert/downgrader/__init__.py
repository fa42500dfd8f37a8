"""Downgrader from unified pipelines to the legacy pipeline format."""

from .conditions import convert_stage_when, convert_step_when
from .downgrader import Downgrader, DowngradeOptions, V1Parser
from .names import convert_name, slug

__all__ = [
    "Downgrader",
    "DowngradeOptions",
    "V1Parser",
    "convert_name",
    "convert_stage_when",
    "convert_step_when",
    "slug",
]
