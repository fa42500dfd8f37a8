"""
Translation of Drone variable substitution into expressions.

Drone expands ``$NAME``, ``${NAME}`` and the shell-style operators
``${NAME/old/new}``, ``${NAME//old/new}`` and ``${NAME:offset:length}``
at runtime. Known build variables are rewritten into the equivalent
expression; unknown variables are left exactly as written.
"""

import re
from typing import Any

VARIABLE_MAP = {
    "DRONE_BRANCH": "<+codebase.branch>",
    "DRONE_BUILD_NUMBER": "<+pipeline.sequenceId>",
    "DRONE_COMMIT_AUTHOR": "<+codebase.gitUserId>",
    "DRONE_COMMIT_BRANCH": "<+codebase.branch>",
    "DRONE_COMMIT_SHA": "<+codebase.commitSha>",
    "DRONE_PULL_REQUEST": "<+codebase.prNumber>",
    "DRONE_PULL_REQUEST_TITLE": "<+codebase.prTitle>",
    "DRONE_REMOTE_URL": "<+codebase.repoUrl>",
    "DRONE_REPO_NAME": "<+<+codebase.repoUrl>.substring(<+codebase.repoUrl>.lastIndexOf('/') + 1)>",
    "CI_BUILD_NUMBER": "<+pipeline.sequenceId>",
    "CI_COMMIT_AUTHOR": "<+codebase.gitUserId>",
    "CI_COMMIT_BRANCH": "<+codebase.branch>",
    "CI_COMMIT_SHA": "<+codebase.commitSha>",
    "CI_REMOTE_URL": "<+codebase.repoUrl>",
    "CI_REPO_NAME": "<+<+codebase.repoUrl>.substring(<+codebase.repoUrl>.lastIndexOf('/') + 1)>",
}

_REPLACEMENT_CHECK = re.compile(r"\$\{(\w+)(/|//)([^/]+)/([^}]+)\}")
_REPLACEMENT = re.compile(r"\$\{([^}/]+)(/|//)([^/]+)/([^}]+)\}")
_SUBSTRING = re.compile(r"\$\$?({)?(\w+)((:\d+)?(:\d+)?)?(})?")
_SIMPLE = re.compile(r"\$\$?({)?(\w+)(})?")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_]+")


def _unwrap(expression: str) -> str:
    return expression.strip("<+>")


def replace_simple_var(value: str) -> str:
    def substitute(match: re.Match) -> str:
        name = match.group(0).strip("${}")
        return VARIABLE_MAP.get(name, match.group(0))

    return _SIMPLE.sub(substitute, value)


def replace_characters(value: str) -> str:
    """Rewrite ``${NAME/old/new}`` and ``${NAME//old/new}`` operators."""

    def substitute(match: re.Match) -> str:
        name, separator, old, new = match.groups()
        old = old.replace("\\\\", "\\")
        new = new.replace("\\/", "/")
        if new.startswith("/") and len(new) > 1:
            new = new[1:]
        # an escaped slash is the character being replaced
        if old == "\\":
            old = "/"

        expression = VARIABLE_MAP.get(name)
        if expression is None:
            return match.group(0)
        method = "replace" if separator == "//" else "replaceFirst"
        return f"<+{_unwrap(expression)}.{method}('{old}', '{new}')>"

    return _REPLACEMENT.sub(substitute, value)


def process_substring(value: str) -> str:
    """Rewrite ``${NAME:offset:length}`` operators and plain references."""

    def substitute(match: re.Match) -> str:
        parts = match.group(0).strip("${}").split(":")
        expression = VARIABLE_MAP.get(parts[0])
        if expression is None:
            return match.group(0)
        if len(parts) > 1:
            offset = parts[1]
            length = parts[2] if len(parts) > 2 else ""
            return f"<+{_unwrap(expression)}.substring({offset},{length})>"
        return expression

    return _SUBSTRING.sub(substitute, value)


def replace_vars(value: str) -> str:
    """
    Rewrite every known variable reference in a command or value.

    The text is processed word by word so that each word is handled by
    the operator it uses.
    """
    words = value.split(" ")
    for i, word in enumerate(words):
        if _REPLACEMENT_CHECK.search(word):
            words[i] = replace_characters(word)
        elif _SUBSTRING.search(word):
            words[i] = process_substring(word)
        else:
            words[i] = replace_simple_var(word)
    return " ".join(words)


def replace_vars_in(value: Any) -> Any:
    """Apply replace_vars to every string nested in a settings value."""
    if isinstance(value, str):
        return replace_vars(value)
    if isinstance(value, dict):
        return {
            key: replace_vars_in(item)
            for key, item in value.items()
            if isinstance(key, str)
        }
    if isinstance(value, list):
        return [replace_vars_in(item) for item in value]
    return value


def sanitize(name: str) -> str:
    """Replace every run of characters outside ``[a-zA-Z0-9_]`` with ``_``."""
    return _UNSAFE_CHARS.sub("_", name)


def secret_expression(secret: str, org_secrets: list[str]) -> str:
    """
    Return the expression reading a secret.

    Secrets listed as organization secrets are qualified with ``org.``.
    """
    secret_id = sanitize(secret)
    if secret_id in org_secrets:
        secret_id = f"org.{secret_id}"
    return f'<+secrets.getValue("{secret_id}")>'
