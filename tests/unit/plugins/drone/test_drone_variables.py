from __future__ import annotations

import pytest

from ciconvert.plugins.drone.options import build_options
from ciconvert.plugins.drone.variables import (
    replace_vars,
    replace_vars_in,
    sanitize,
    secret_expression,
)


class TestReplaceVars:
    """Known build variables become expressions, unknown ones are kept."""

    @pytest.mark.parametrize("text", ["${DRONE_COMMIT_SHA}", "$DRONE_COMMIT_SHA"])
    def test_braced_and_bare_forms_match(self, text: str) -> None:
        assert replace_vars(text) == "<+codebase.commitSha>"

    @pytest.mark.parametrize(
        "text", ["${DRONE_BUILD_ACTION}", "$DRONE_BUILD_ACTION", "$HOME", "plain"]
    )
    def test_unknown_variables_pass_through(self, text: str) -> None:
        assert replace_vars(text) == text

    def test_words_are_replaced_individually(self) -> None:
        assert (
            replace_vars("git checkout $DRONE_BRANCH && echo ${CI_BUILD_NUMBER}")
            == "git checkout <+codebase.branch> && echo <+pipeline.sequenceId>"
        )

    def test_substring(self) -> None:
        assert (
            replace_vars("${DRONE_COMMIT_SHA:0:8}")
            == "<+codebase.commitSha.substring(0,8)>"
        )

    def test_replace_all(self) -> None:
        assert (
            replace_vars("${DRONE_BRANCH//-/_}")
            == "<+codebase.branch.replace('-', '_')>"
        )

    def test_replace_first_escaped_slash(self) -> None:
        assert (
            replace_vars("${DRONE_BRANCH/\\//-}")
            == "<+codebase.branch.replaceFirst('/', '-')>"
        )

    def test_nested_settings(self) -> None:
        value = {"tags": ["$DRONE_COMMIT_SHA", "latest"], "debug": True}
        assert replace_vars_in(value) == {
            "tags": ["<+codebase.commitSha>", "latest"],
            "debug": True,
        }


class TestSecrets:
    def test_org_scoped_secret(self) -> None:
        assert secret_expression("FOO", ["FOO"]) == '<+secrets.getValue("org.FOO")>'

    def test_project_secret(self) -> None:
        assert secret_expression("BAR", ["FOO"]) == '<+secrets.getValue("BAR")>'

    def test_secret_name_is_sanitized(self) -> None:
        assert secret_expression("docker-pass.word", []) == (
            '<+secrets.getValue("docker_pass_word")>'
        )

    @pytest.mark.parametrize(
        "name, expected",
        [("my-secret", "my_secret"), ("a..b", "a_b"), ("ok_1", "ok_1")],
    )
    def test_sanitize(self, name: str, expected: str) -> None:
        assert sanitize(name) == expected


class TestBuildOptions:
    def test_keywords_override_base(self) -> None:
        options = build_options(kube_connector="k8s", kube_namespace="ci")
        assert options.kube_enabled
        assert options.kube_namespace == "ci"

    def test_org_secrets_are_sanitized_and_deduplicated(self) -> None:
        options = build_options(org_secrets=[" a-b ", "", "a_b", "c"])
        assert options.org_secrets == ["a_b", "c"]
