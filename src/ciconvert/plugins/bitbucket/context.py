"""
Bitbucket Conversion Context

State owned by a single conversion call and passed explicitly through the
stage and step helpers of the converter.
"""

from dataclasses import dataclass, field

from ...core.options import ConverterOptions
from ...core.store import Identifiers
from .models import Config, Stage, Step


@dataclass
class BitbucketContext:
    """
    Conversion state for one Bitbucket document.

    ``stage`` and ``step`` point at the nodes currently being converted and
    are replaced as the walk descends.
    """

    config: Config
    options: ConverterOptions
    identifiers: Identifiers = field(default_factory=Identifiers)
    stage: Stage | None = None
    step: Step | None = None

    def for_stage(self, stage: Stage) -> "BitbucketContext":
        return BitbucketContext(self.config, self.options, self.identifiers, stage)

    def for_step(self, step: Step) -> "BitbucketContext":
        return BitbucketContext(
            self.config, self.options, self.identifiers, self.stage, step
        )
