"""Rewriting of GitHub Actions ``if:`` expressions into runtime expressions."""

import re

_WRAPPED = re.compile(r"^\s*\$\{\{(.*)\}\}\s*$", re.DOTALL)

FUNCTIONS = (
    ("!contains(", "!~ "),
    ("contains(", "=~ "),
    ("startsWith(", "=^ "),
    ("endsWith(", "=$ "),
)

CONTEXT_VARIABLES = {
    "github.event_name": "<+trigger.event>",
    "github.ref": "<+trigger.payload.ref>",
    "github.head_ref": "<+trigger.sourceBranch>",
    "github.event.ref": "<+trigger.payload.ref>",
    "github.base_ref": "<+trigger.targetBranch>",
    "github.event.number": "<+trigger.prNumber>",
    "github.event.pull_request.title": "<+trigger.prTitle>",
    "github.event.pull_request.body": "<+trigger.payload.pull_request.body>",
    "github.event.pull_request.html_url": "<+trigger.payload.pull_request.html_url>",
    "github.event.repository.html_url": "<+trigger.repoUrl>",
    "github.actor": "<+trigger.gitUser>",
    "github.actor_email": "<+codebase.gitUserEmail>",
}

# longest names first so that github.actor_email is not read as github.actor
_CONTEXT_PATTERN = re.compile(
    r"(?<![\w.])("
    + "|".join(re.escape(name) for name in sorted(CONTEXT_VARIABLES, key=len, reverse=True))
    + r")(?![\w])"
)


def unwrap(expression: str) -> str:
    """Strip an optional ``${{ ... }}`` wrapper."""
    match = _WRAPPED.match(expression)
    if match:
        return match.group(1).strip()
    return expression.strip()


def github_expr_to_jexl(expression: str) -> str:
    """
    Translate a GitHub expression into the runtime expression language.

    Status functions and operators are kept as written; string functions
    become match operators and known context variables become trigger and
    codebase expressions.
    """
    result = unwrap(expression)
    for function, operator in FUNCTIONS:
        result = result.replace(function, operator)
    return _CONTEXT_PATTERN.sub(lambda m: CONTEXT_VARIABLES[m.group(1)], result)
