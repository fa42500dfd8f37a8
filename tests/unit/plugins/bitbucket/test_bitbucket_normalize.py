from __future__ import annotations

import pytest

from ciconvert.plugins.bitbucket.extract import (
    extract_caches,
    extract_runs_on,
    extract_size,
    extract_steps,
)
from ciconvert.plugins.bitbucket.models import Config, Options, Size, Stage
from ciconvert.plugins.bitbucket.normalize import normalize


@pytest.fixture
def mixed_config() -> Config:
    return Config.model_validate(
        {
            "pipelines": {
                "default": [
                    {"step": {"name": "one", "script": ["a"]}},
                    {"parallel": [{"step": {"name": "two", "script": ["b"]}}]},
                    {"stage": {"name": "deploy", "steps": [{"step": {"script": ["c"]}}]}},
                    {"step": {"name": "three", "script": ["d"]}},
                ]
            }
        }
    )


class TestNormalize:
    def test_orphan_steps_are_grouped_into_stages(self, mixed_config: Config) -> None:
        default = normalize(mixed_config).pipelines.default
        assert [entry.stage is not None for entry in default] == [True, True, True]
        assert len(default[0].stage.steps) == 2
        assert default[1].stage.name == "deploy"
        assert default[2].stage.steps[0].step.name == "three"

    def test_idempotent(self, mixed_config: Config) -> None:
        once = normalize(mixed_config)
        assert normalize(once) == once

    def test_input_is_not_modified(self, mixed_config: Config) -> None:
        normalize(mixed_config)
        assert mixed_config.pipelines.default[0].step is not None


class TestExtract:
    @pytest.fixture
    def stage(self) -> Stage:
        return Stage.model_validate(
            {
                "steps": [
                    {"step": {"size": "4x", "caches": ["pip", "node"], "runs-on": ["b", "a"]}},
                    {
                        "parallel": [
                            {"step": {"size": "2x", "caches": ["node"], "runs-on": "a"}}
                        ]
                    },
                ]
            }
        )

    def test_extract_steps_includes_parallel(self, stage: Stage) -> None:
        assert len(extract_steps(stage)) == 2

    def test_largest_size_wins(self, stage: Stage) -> None:
        assert extract_size(Options.model_validate({"size": "1x"}), stage) is Size.X4

    def test_global_size_is_a_floor(self, stage: Stage) -> None:
        assert extract_size(Options.model_validate({"size": "8x"}), stage) is Size.X8

    def test_caches_and_runs_on_sorted_unique(self, stage: Stage) -> None:
        assert extract_caches(stage) == ["node", "pip"]
        assert extract_runs_on(stage) == ["a", "b"]
