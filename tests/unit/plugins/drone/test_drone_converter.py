from __future__ import annotations

import pytest
from pydantic import ValidationError

from ciconvert.core.options import ConverterOptions
from ciconvert.core.yaml_io import load_yaml
from ciconvert.harness import v1
from ciconvert.plugins.drone.converter import (
    DroneConverter,
    convert_args,
    convert_platform,
    convert_variables,
    rewrite_output,
)
from ciconvert.plugins.drone.legacy import LegacyDroneConverter
from ciconvert.plugins.drone.models import Condition, Pipeline, Step, parse_bytes_size

DRONE_YAML = """
kind: pipeline
type: docker
name: default

steps:
  - name: build
    image: golang:1.21
    commands:
      - go build
      - go test ./...
    environment:
      TOKEN:
        from_secret: token
      MODE: release
  - name: publish
    image: plugins/docker
    settings:
      repo: acme/app
      tags: [latest, "${DRONE_COMMIT_SHA}"]
      password:
        from_secret: docker_password
  - name: server
    image: redis
    detach: true

trigger:
  branch:
    - main
---
kind: secret
name: token
get:
  path: secret/data/ci
  name: token
"""


def convert(converter, text: str) -> v1.Config:
    return converter.convert_document(converter.get_parser().parse_string(text))


class TestModels:
    @pytest.mark.parametrize(
        "raw, expected",
        [(None, 0), (100, 100), ("1k", 1024), ("512MB", 512 * 1024**2), ("1g", 1024**3)],
    )
    def test_parse_bytes_size(self, raw, expected: int) -> None:
        assert parse_bytes_size(raw) == expected

    def test_parse_bytes_size_rejects_text(self) -> None:
        with pytest.raises(ValueError):
            parse_bytes_size("lots")

    def test_condition_forms(self) -> None:
        assert Condition.model_validate("main").include == ["main"]
        assert Condition.model_validate(["a", "b"]).include == ["a", "b"]
        condition = Condition.model_validate({"exclude": "dev"})
        assert condition.exclude == ["dev"]

    def test_environment_from_secret(self) -> None:
        step = Step.model_validate(
            {"environment": {"A": 1, "B": {"from_secret": "b"}, "C": None}}
        )
        assert step.environment["A"].value == "1"
        assert step.environment["B"].secret == "b"
        assert "C" not in step.environment

    def test_invalid_environment_value(self) -> None:
        with pytest.raises(ValidationError):
            Step.model_validate({"environment": {"A": [1, 2]}})


class TestDroneConverter:
    @pytest.fixture
    def config(self) -> v1.Config:
        return convert(DroneConverter(), DRONE_YAML)

    def test_only_pipeline_documents_become_stages(self, config: v1.Config) -> None:
        assert [s.name for s in config.spec.stages] == ["default"]

    def test_trigger_becomes_stage_when(self, config: v1.Config) -> None:
        when = config.spec.stages[0].when
        assert when.cond[0]["branch"].in_ == ["main"]

    def test_run_step(self, config: v1.Config) -> None:
        build = config.spec.stages[0].spec.steps[0]
        assert build.type == "script"
        assert build.spec.image == "golang:1.21"
        assert build.spec.run == "go build\ngo test ./..."
        assert build.spec.envs == {
            "TOKEN": '<+secrets.getValue("token")>',
            "MODE": "release",
        }

    def test_plugin_step(self, config: v1.Config) -> None:
        publish = config.spec.stages[0].spec.steps[1]
        assert publish.type == "plugin"
        assert publish.spec.with_ == {
            "repo": "acme/app",
            "tags": ["latest", "<+codebase.commitSha>"],
            "password": '<+secrets.getValue("docker_password")>',
        }

    def test_detached_step_is_background(self, config: v1.Config) -> None:
        server = config.spec.stages[0].spec.steps[2]
        assert server.type == "background"

    def test_docker_pipeline_runs_on_machine(self, config: v1.Config) -> None:
        runtime = config.spec.stages[0].spec.runtime
        assert runtime.type == "machine"

    def test_kubernetes_connector(self) -> None:
        converter = DroneConverter(kube_connector="k8s")
        runtime = convert(converter, DRONE_YAML).spec.stages[0].spec.runtime
        assert runtime.type == "kubernetes"
        assert runtime.spec.connector == "k8s"
        assert runtime.spec.namespace == "default"

    def test_org_secrets(self) -> None:
        converter = DroneConverter(ConverterOptions(org_secrets=["token"]))
        build = convert(converter, DRONE_YAML).spec.stages[0].spec.steps[0]
        assert build.spec.envs["TOKEN"] == '<+secrets.getValue("org.token")>'

    def test_failure_ignore(self) -> None:
        text = "kind: pipeline\nsteps:\n  - name: lint\n    commands: [make lint]\n    failure: ignore\n"
        step = convert(DroneConverter(), text).spec.stages[0].spec.steps[0]
        assert step.failure.action.type == "ignore"
        assert step.failure.errors == ["all"]

    def test_registry_from_pull_secrets(self) -> None:
        text = (
            "kind: pipeline\nimage_pull_secrets: [dockerconfig, b]\n---\n"
            "kind: pipeline\nimage_pull_secrets: [a]\n"
        )
        registry = convert(DroneConverter(), text).spec.options.registry
        assert [c.name for c in registry.connector] == ["a", "b", "dockerconfig"]

    def test_output_rewrites_workspace(self) -> None:
        text = "kind: pipeline\nsteps:\n  - name: ls\n    commands: [ls /drone/src]\n"
        output = load_yaml(DroneConverter().convert_string(text).decode())
        step = output["spec"]["stages"][0]["spec"]["steps"][0]
        assert step["spec"]["run"] == "ls /harness"


class TestLegacyDroneConverter:
    def test_detached_step_is_script(self) -> None:
        steps = convert(LegacyDroneConverter(), DRONE_YAML).spec.stages[0].spec.steps
        assert [s.type for s in steps] == ["script", "plugin", "script"]

    def test_services_are_background(self) -> None:
        text = "kind: pipeline\nservices:\n  - name: db\n    image: postgres\nsteps:\n  - name: t\n    commands: [make]\n"
        steps = convert(LegacyDroneConverter(), text).spec.stages[0].spec.steps
        assert [s.type for s in steps] == ["background", "script"]


class TestHelpers:
    def test_convert_args(self) -> None:
        assert convert_args(["/bin/sh", "-c"], ["echo hi"]) == ["-c", "echo hi"]
        assert convert_args([], []) is None

    def test_convert_args_without_entrypoint_arguments(self) -> None:
        assert convert_args(["/entry.sh"], ["--verbose"]) == ["--verbose"]
        assert convert_args([], ["make", "test"]) == ["make", "test"]

    def test_convert_variables_sanitizes_every_key(self) -> None:
        step = Step.model_validate(
            {"environment": {"api-url": "http://x", "deploy.token": {"from_secret": "t"}}}
        )
        assert convert_variables(step.environment, ["t"]) == {
            "api_url": "http://x",
            "deploy_token": '<+secrets.getValue("org.t")>',
        }

    @pytest.mark.parametrize(
        "os_name, arch, expected",
        [
            ("windows", "amd64", ("windows", "amd64")),
            ("darwin", "arm64", ("macos", "arm64")),
            ("linux", "arm", ("linux", "arm64")),
            ("freebsd", "", ("linux", "amd64")),
        ],
    )
    def test_convert_platform(self, os_name: str, arch: str, expected) -> None:
        pipeline = Pipeline.model_validate({"platform": {"os": os_name, "arch": arch}})
        platform = convert_platform(pipeline)
        assert (platform.os, platform.arch) == expected

    def test_convert_platform_unset(self) -> None:
        assert convert_platform(Pipeline()) is None

    def test_rewrite_output(self) -> None:
        assert rewrite_output("a\\\\\\\\b /drone/src/x") == "a\\\\b /harness/x"
