from __future__ import annotations

import pytest

from ciconvert.core.options import ConverterOptions
from ciconvert.harness import v1
from ciconvert.plugins.github.converter import (
    GitHubConverter,
    convert_mounts,
    convert_runs_on,
    merge_when,
)
from ciconvert.plugins.github.models import Permissions, Secrets

WORKFLOW = """
name: CI
on: push
env:
  GLOBAL: "1"
jobs:
  test:
    runs-on: ubuntu-latest
    container: node:20
    strategy:
      max-parallel: 2
      matrix:
        node: [18, 20]
        include:
          - node: 21
            experimental: true
    services:
      redis:
        image: redis:7
        ports: [6379]
    steps:
      - uses: actions/checkout@v4
        with:
          fetch-depth: 1
      - name: Install
        run: npm ci
        shell: bash
      - name: Setup
        uses: actions/setup-node@v4
        with:
          node-version: 20.1
      - name: Test
        if: ${{ github.event_name == 'push' }}
        run: npm test
        continue-on-error: true
        timeout-minutes: 10
  empty:
"""


@pytest.fixture
def config() -> v1.Config:
    converter = GitHubConverter()
    return converter.convert_document(converter.get_parser().parse_string(WORKFLOW))


class TestGitHubConverter:
    def test_jobs_become_stages(self, config: v1.Config) -> None:
        assert [s.name for s in config.spec.stages] == ["test"]
        assert config.spec.options.envs == {"GLOBAL": "1"}

    def test_stage_settings(self, config: v1.Config) -> None:
        stage = config.spec.stages[0]
        assert stage.spec.clone.depth == 1
        assert stage.spec.platform.os == "linux"
        assert stage.spec.runtime.type == "cloud"

    def test_matrix(self, config: v1.Config) -> None:
        matrix = config.spec.stages[0].strategy.spec
        assert matrix.axis == {"node": ["18", "20"]}
        assert matrix.include == [{"node": "21", "experimental": "true"}]
        assert matrix.concurrency == 2

    def test_steps(self, config: v1.Config) -> None:
        steps = config.spec.stages[0].spec.steps
        assert [s.type for s in steps] == ["background", "script", "action", "script"]
        redis, install, setup, test = steps
        assert redis.name == "redis"
        assert redis.spec.ports == ["6379"]
        assert install.spec.image == "node:20"
        assert install.spec.shell == "bash"
        assert setup.spec.uses == "actions/setup-node@v4"
        assert setup.spec.with_ == {"node-version": "20.1"}
        assert test.when.eval == "<+trigger.event> == 'push'"
        assert test.failure.action.type == "ignore"
        assert test.timeout == "10m0s"

    def test_kubernetes_runtime(self) -> None:
        converter = GitHubConverter(ConverterOptions(kube_connector="k8s"))
        config = converter.convert_document(converter.get_parser().parse_string(WORKFLOW))
        runtime = config.spec.stages[0].spec.runtime
        assert runtime.type == "kubernetes"
        assert runtime.spec.connector == "k8s"

    def test_trigger_branches_become_stage_conditions(self) -> None:
        source = """
on:
  push:
    branches: [main]
  pull_request:
jobs:
  build:
    runs-on: ubuntu-latest
    steps: [{run: make}]
  deploy:
    if: github.ref == 'refs/heads/main'
    runs-on: ubuntu-latest
    steps: [{run: make deploy}]
"""
        converter = GitHubConverter()
        build, deploy = converter.convert_document(
            converter.get_parser().parse_string(source)
        ).spec.stages
        assert build.when.cond == [
            {"event": v1.Expr(in_=["push"]), "branch": v1.Expr(in_=["main"])},
            {"event": v1.Expr(in_=["pull_request"])},
        ]
        assert build.when.eval is None
        assert deploy.when.cond == build.when.cond
        assert deploy.when.eval == "<+trigger.payload.ref> == 'refs/heads/main'"

    def test_unfiltered_trigger_has_no_condition(self, config: v1.Config) -> None:
        assert config.spec.stages[0].when is None


class TestHelpers:
    @pytest.mark.parametrize(
        "labels, os_name",
        [
            (["macos-14"], "macos"),
            (["windows-latest"], "windows"),
            (["self-hosted", "linux"], "linux"),
        ],
    )
    def test_convert_runs_on(self, labels: list[str], os_name: str) -> None:
        assert convert_runs_on(labels).os == os_name

    def test_convert_runs_on_empty(self) -> None:
        assert convert_runs_on([]) is None

    def test_convert_mounts(self) -> None:
        mounts = convert_mounts(["data:/data:ro", "/tmp/cache"])
        assert (mounts[0].name, mounts[0].path) == ("data", "/data")
        assert (mounts[1].name, mounts[1].path) == (None, "/tmp/cache")


class TestModels:
    def test_permissions_forms(self) -> None:
        assert Permissions.model_validate("read-all").encode() == "read-all"
        scoped = Permissions.model_validate({"contents": "read", "bogus": "write"})
        assert scoped.encode() == {"contents": "read"}

    def test_secrets_inherit(self) -> None:
        assert Secrets.model_validate("inherit").inherit is True
        assert Secrets.model_validate({"TOKEN": "x"}).values == {"TOKEN": "x"}


class TestMergeWhen:
    def test_either_side_missing(self) -> None:
        when = v1.When(eval="a")
        assert merge_when(None, when) is when
        assert merge_when(when, None) is when
        assert merge_when(None, None) is None

    def test_trigger_blocks_and_job_condition(self) -> None:
        trigger = v1.When(cond=[{"event": v1.Expr(in_=["push"])}])
        merged = merge_when(trigger, v1.When(eval="a"))
        assert merged.cond == trigger.cond
        assert merged.eval == "a"
