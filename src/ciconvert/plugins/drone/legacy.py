"""
Drone converter producing the layout expected by the downgrader.

Unlike DroneConverter, detached steps are converted like any other step;
only services become background steps. Both converters build their options
through ``build_options``.
"""

import logging

from ...core.common.base_converter import BaseConverter
from ...core.options import ConverterOptions
from ...harness import v1
from .converter import (
    DroneParser,
    convert_background,
    convert_plugin,
    convert_registry,
    convert_run,
    convert_stage,
    is_plugin,
    rewrite_output,
)
from .models import KIND_PIPELINE, Pipeline
from .options import build_options

logger = logging.getLogger(__name__)


class LegacyDroneConverter(BaseConverter):
    """Converts ``.drone.yml`` streams for a later downgrade to v0."""

    name = "drone-legacy"
    description = "Drone CI (downgrade compatible)"
    supported_files = [".drone.yml"]

    def __init__(
        self,
        options: ConverterOptions | None = None,
        *,
        dockerhub_connector: str | None = None,
        kube_namespace: str | None = None,
        kube_connector: str | None = None,
        org_secrets: list[str] | None = None,
    ):
        super().__init__()
        self.options = build_options(
            options,
            dockerhub_connector=dockerhub_connector,
            kube_namespace=kube_namespace,
            kube_connector=kube_connector,
            org_secrets=org_secrets,
        )

    def get_parser(self) -> DroneParser:
        return DroneParser()

    def convert_document(self, document: list[Pipeline]) -> v1.Config:
        pipeline = v1.Pipeline(options=v1.Default(registry=convert_registry(document)))
        for source in document:
            if source.kind != KIND_PIPELINE:
                continue

            steps = [convert_background(s, self.options) for s in source.services]
            for step in source.steps:
                if is_plugin(step):
                    steps.append(convert_plugin(step, self.options))
                else:
                    steps.append(convert_run(step, self.options))

            pipeline.stages.append(convert_stage(source, self.options, steps))

        self._logger.debug(f"Converted {len(pipeline.stages)} stage(s)")
        return v1.Config(spec=pipeline)

    def postprocess(self, text: str) -> str:
        return rewrite_output(text)
