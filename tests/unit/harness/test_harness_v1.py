from __future__ import annotations

import pytest
from pydantic import ValidationError

from ciconvert.core.yaml_io import to_plain
from ciconvert.harness import v1


class TestSpecVariants:
    """The ``type`` key always mirrors the spec variant."""

    @pytest.mark.parametrize(
        "spec, expected",
        [
            (v1.StepExec(run="make"), "script"),
            (v1.StepPlugin(image="plugins/slack"), "plugin"),
            (v1.StepBackground(image="redis"), "background"),
            (v1.StepAction(uses="actions/checkout@v4"), "action"),
            (v1.StepBitrise(uses="xcode-test@4"), "bitrise"),
            (v1.StepGroup(), "group"),
            (v1.StepParallel(), "parallel"),
        ],
    )
    def test_step_type_derived(self, spec: v1.SpecVariant, expected: str) -> None:
        assert v1.Step(spec=spec).type == expected

    def test_runtime_and_volume_types(self) -> None:
        assert v1.Runtime(spec=v1.RuntimeCloud()).type == "cloud"
        assert v1.Runtime(spec=v1.RuntimeKubernetes()).type == "kubernetes"
        assert v1.Volume(name="cache", spec=v1.VolumeHost(path="/tmp")).type == "host"

    def test_no_spec(self) -> None:
        assert v1.Step(name="empty").type is None

    def test_mismatched_type_rejected(self) -> None:
        with pytest.raises(ValidationError, match="does not match"):
            v1.Step(type="plugin", spec=v1.StepExec(run="make"))

    def test_decode_selects_variant(self) -> None:
        step = v1.Step.model_validate(
            {"type": "background", "spec": {"image": "redis", "ports": ["6379"]}}
        )
        assert isinstance(step.spec, v1.StepBackground)
        assert step.spec.ports == ["6379"]

    def test_decode_nested_steps(self) -> None:
        step = v1.Step.model_validate(
            {
                "type": "parallel",
                "spec": {
                    "steps": [
                        {"type": "group", "spec": {"steps": [{"type": "script", "spec": {}}]}}
                    ]
                },
            }
        )
        inner = step.spec.steps[0]
        assert isinstance(inner.spec, v1.StepGroup)
        assert isinstance(inner.spec.steps[0].spec, v1.StepExec)
        assert [s.type for s in v1.iter_steps([step])] == ["parallel", "group", "script"]

    @pytest.mark.parametrize("kind", ["teleport", None])
    def test_unknown_type_rejected(self, kind: str | None) -> None:
        with pytest.raises(ValidationError, match="unknown step type"):
            v1.Step.model_validate({"type": kind, "spec": {}})

    def test_unknown_runtime_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unknown runtime type"):
            v1.Runtime.model_validate({"type": "mainframe", "spec": {}})


class TestAliases:
    def test_keyword_fields(self) -> None:
        expr = v1.Expr.model_validate({"in": ["main"], "not": {"in": ["dev"]}})
        assert expr.in_ == ["main"]
        assert expr.not_.in_ == ["dev"]

        plugin = v1.StepPlugin.model_validate({"with": {"channel": "ci"}})
        assert plugin.with_ == {"channel": "ci"}

        runtime = v1.RuntimeKubernetes.model_validate(
            {"node-selector": {"disk": "ssd"}, "service-account": "ci"}
        )
        assert runtime.node_selector == {"disk": "ssd"}
        assert runtime.service_account == "ci"


class TestPlainTree:
    def test_empty_nodes(self) -> None:
        config = v1.Config(
            spec=v1.Pipeline(
                stages=[
                    v1.Stage(
                        name="build",
                        spec=v1.StageCI(
                            runtime=v1.Runtime(spec=v1.RuntimeCloud()),
                            steps=[v1.Step(name="make", spec=v1.StepExec(run="make"))],
                            envs={},
                        ),
                    )
                ]
            )
        )
        assert to_plain(config) == {
            "version": 1,
            "kind": "pipeline",
            "spec": {
                "stages": [
                    {
                        "name": "build",
                        "type": "ci",
                        "spec": {
                            "runtime": {"type": "cloud", "spec": {}},
                            "steps": [
                                {"name": "make", "type": "script", "spec": {"run": "make"}}
                            ],
                        },
                    }
                ]
            },
        }
