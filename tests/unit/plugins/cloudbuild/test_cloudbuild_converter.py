from __future__ import annotations

import pytest

from ciconvert.core.exceptions import DecodeError
from ciconvert.core.options import ConverterOptions
from ciconvert.core.yaml_io import load_yaml
from ciconvert.harness import v1
from ciconvert.plugins.cloudbuild.converter import (
    TRIGGER_ENVS,
    CloudBuildConverter,
    convert_env,
    convert_timeout,
    is_privileged,
    merge_envs,
    rewrite_substitutions,
)

BUILD = """
steps:
  - name: gcr.io/cloud-builders/git
    args: [clone, https://github.com/acme/app]
  - name: gcr.io/cloud-builders/docker
    id: build
    args: [build, -t, "gcr.io/$PROJECT_ID/app:$SHORT_SHA", .]
    volumes:
      - name: cache
        path: /cache
  - name: python:3.12
    entrypoint: bash
    args: [-c, pytest]
    env:
      - PYTHONUNBUFFERED=1
    secretEnv: [API_KEY]
    allowFailure: true
    timeout: 300s
  - name: python:3.12
    script: ./lint.sh
substitutions:
  _REGION: europe-west1
  _REPLICAS: 3
options:
  env:
    - CI=true
  secretEnv: DEPLOY_KEY
timeout: 1200s
"""


@pytest.fixture
def converter() -> CloudBuildConverter:
    return CloudBuildConverter()


@pytest.fixture
def config(converter: CloudBuildConverter) -> v1.Config:
    return converter.convert_document(converter.get_parser().parse_string(BUILD))


class TestCloudBuildConverter:
    def test_stage(self, config: v1.Config) -> None:
        stage = config.spec.stages[0]
        assert stage.name == "pipeline"
        assert stage.spec.runtime.type == "cloud"
        assert config.spec.options.timeout == "20m0s"

    def test_stage_variables(self, config: v1.Config) -> None:
        envs = config.spec.stages[0].spec.envs
        for key, value in TRIGGER_ENVS.items():
            assert envs[key] == value
        assert envs["_REGION"] == "europe-west1"
        assert envs["_REPLICAS"] == "3"
        assert envs["CI"] == "true"
        assert envs["DEPLOY_KEY"] == '<+secrets.getValue("DEPLOY_KEY")>'

    def test_git_builder_skipped(self, config: v1.Config) -> None:
        names = [step.name for step in config.spec.stages[0].spec.steps]
        assert names == ["build", "python:3.12", "python:3.120"]

    def test_docker_step(self, config: v1.Config) -> None:
        step = config.spec.stages[0].spec.steps[0]
        assert step.spec.image == "gcr.io/cloud-builders/docker"
        assert step.spec.privileged is True
        assert step.spec.mount == [v1.Mount(name="cache", path="/cache")]
        volumes = config.spec.stages[0].spec.volumes
        assert [(v.name, v.type) for v in volumes] == [("cache", "temp")]

    def test_script_step(self, config: v1.Config) -> None:
        step = config.spec.stages[0].spec.steps[1]
        assert step.spec.privileged is None
        assert step.spec.entrypoint == "bash"
        assert step.spec.args == ["-c", "pytest"]
        assert step.spec.envs == {
            "PYTHONUNBUFFERED": "1",
            "API_KEY": '<+secrets.getValue("API_KEY")>',
        }
        assert step.timeout == "5m0s"
        assert step.failure.action.type == "ignore"
        assert config.spec.stages[0].spec.steps[2].spec.run == "./lint.sh"

    def test_output_rewrites_substitutions(self, converter: CloudBuildConverter) -> None:
        output = load_yaml(converter.convert_string(BUILD).decode())
        docker = output["spec"]["stages"][0]["spec"]["steps"][0]
        assert docker["spec"]["args"][2] == (
            "gcr.io/$HARNESS_PROJECT_ID/app:$DRONE_COMMIT_SHA"
        )
        assert output["spec"]["stages"][0]["spec"]["volumes"] == [
            {"name": "cache", "type": "temp", "spec": {}}
        ]

    def test_minimal_build_output_loads(self, converter: CloudBuildConverter) -> None:
        source = "steps:\n- name: gcr.io/cloud-builders/npm\n  args: [install]\n"
        output = load_yaml(converter.convert_string(source).decode())
        assert output["spec"]["stages"][0]["spec"]["envs"] == {
            "DRONE_REPO_NAME": "<+trigger.payload.repository.name>",
            "DRONE_COMMIT_BRANCH": "<+trigger.branch>",
            "DRONE_COMMIT_SHA": "<+trigger.commitSha>",
        }

    def test_substitution_env_keys_are_merged(
        self, converter: CloudBuildConverter
    ) -> None:
        source = """
steps:
  - name: alpine
    env: [SHORT_SHA=short, COMMIT_SHA=long]
options:
  env: [COMMIT_SHA=x]
"""
        output = load_yaml(converter.convert_string(source).decode())
        stage = output["spec"]["stages"][0]["spec"]
        assert stage["envs"]["DRONE_COMMIT_SHA"] == "x"
        assert "COMMIT_SHA" not in stage["envs"]
        assert stage["steps"][0]["spec"]["envs"] == {"DRONE_COMMIT_SHA": "long"}

    def test_kubernetes_runtime_and_connector(self) -> None:
        converter = CloudBuildConverter(
            ConverterOptions(kube_connector="k8s", dockerhub_connector="hub")
        )
        config = converter.convert_document(converter.get_parser().parse_string(BUILD))
        stage = config.spec.stages[0]
        assert stage.spec.runtime.type == "kubernetes"
        assert all(step.spec.connector == "hub" for step in stage.spec.steps)

    def test_invalid_timeout(self, converter: CloudBuildConverter) -> None:
        with pytest.raises(DecodeError):
            converter.get_parser().parse_string("timeout: ten minutes\n")


class TestHelpers:
    def test_convert_env(self) -> None:
        assert convert_env(["A=1", "B=x=y", "BROKEN"]) == {"A": "1", "B": "x=y"}
        assert convert_env([]) is None

    def test_convert_timeout(self) -> None:
        assert convert_timeout(0) is None
        assert convert_timeout(90) == "1m30s"

    def test_is_privileged(self) -> None:
        assert is_privileged("gcr.io/cloud-builders/docker")
        assert not is_privileged("docker:24")

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("$PROJECT_ID", "$HARNESS_PROJECT_ID"),
            ("${BRANCH_NAME}", "${DRONE_COMMIT_BRANCH}"),
            ("$SHORT_SHA-$COMMIT_SHA", "$DRONE_COMMIT_SHA-$DRONE_COMMIT_SHA"),
            ("$_MY_PROJECT_ID", "$_MY_PROJECT_ID"),
            ("no substitutions", "no substitutions"),
        ],
    )
    def test_rewrite_substitutions(self, text: str, expected: str) -> None:
        assert rewrite_substitutions(text) == expected

    def test_merge_envs(self) -> None:
        assert merge_envs({"COMMIT_SHA": "a"}, None, {"SHORT_SHA": "b", "_X": "c"}) == {
            "DRONE_COMMIT_SHA": "b",
            "_X": "c",
        }
