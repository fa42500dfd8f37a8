from __future__ import annotations

import pytest

from ciconvert.plugins.github.expressions import github_expr_to_jexl, unwrap


class TestUnwrap:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("${{ success() }}", "success()"),
            ("  ${{github.ref}}  ", "github.ref"),
            ("always()", "always()"),
        ],
    )
    def test_unwrap(self, text: str, expected: str) -> None:
        assert unwrap(text) == expected


class TestGithubExprToJexl:
    def test_context_variable(self) -> None:
        assert (
            github_expr_to_jexl("${{ github.ref == 'refs/heads/main' }}")
            == "<+trigger.payload.ref> == 'refs/heads/main'"
        )

    def test_status_functions_are_kept(self) -> None:
        assert (
            github_expr_to_jexl("success() && github.event_name == 'push'")
            == "success() && <+trigger.event> == 'push'"
        )

    def test_longest_name_wins(self) -> None:
        assert github_expr_to_jexl("github.actor_email") == "<+codebase.gitUserEmail>"
        assert github_expr_to_jexl("github.actor") == "<+trigger.gitUser>"

    def test_partial_names_are_not_replaced(self) -> None:
        assert github_expr_to_jexl("github.ref_name == 'x'") == "github.ref_name == 'x'"

    @pytest.mark.parametrize(
        "function, operator",
        [
            ("contains(", "=~ "),
            ("!contains(", "!~ "),
            ("startsWith(", "=^ "),
            ("endsWith(", "=$ "),
        ],
    )
    def test_string_functions(self, function: str, operator: str) -> None:
        result = github_expr_to_jexl(f"{function}github.base_ref, 'release')")
        assert result == f"{operator}<+trigger.targetBranch>, 'release')"
