"""Model reply validation."""

from __future__ import annotations

import json
import re
import shlex
from collections.abc import Sequence

from loguru import logger

from vicon.core.types import GenerateResult
from vicon.errors import ResponseValidationError

LEADING_FENCE_RE = re.compile(r"^```(?:json)?\n?")
TRAILING_FENCE_RE = re.compile(r"\n?```$")
# Alternation order matters: quoted and escaped text first, then redirections
# that contain `&` or `|`, then control operators.
SHELL_TOKEN_RE = re.compile(
    r"""
    (?P<single>'[^']*')
    | (?P<double>"(?:\\.|[^"\\])*")
    | (?P<escaped>\\.)
    | (?P<redirect>&>>?|[0-9]*[<>]&|>\||[<>]{1,2})
    | (?P<operator>&&|\|\||;;|\|&|[;&|()])
    | (?P<word>[^'"\\&|;()<>\s]+)
    | (?P<space>\s+)
    | (?P<other>.)
    """,
    re.VERBOSE | re.DOTALL,
)
SHAPE_MESSAGE = "Response missing required fields: commands (string[]) and explanation (string)"


def normalize_response(raw: str) -> str:
    """Strip surrounding whitespace and an optional markdown fence."""

    cleaned = raw.strip()
    cleaned = LEADING_FENCE_RE.sub("", cleaned, count=1)
    return TRAILING_FENCE_RE.sub("", cleaned, count=1)


def parse_response(cleaned: str, raw: str) -> GenerateResult:
    """Parse normalized text and check its shape.

    Every failure carries ``raw``, the text as the backend sent it.
    """

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseValidationError("Invalid JSON response from AI", raw) from exc

    if not isinstance(parsed, dict):
        raise ResponseValidationError(SHAPE_MESSAGE, raw)

    commands = parsed.get("commands")
    explanation = parsed.get("explanation")
    if not isinstance(commands, list) or not all(isinstance(command, str) for command in commands):
        raise ResponseValidationError(SHAPE_MESSAGE, raw)
    if not isinstance(explanation, str):
        raise ResponseValidationError(SHAPE_MESSAGE, raw)

    return GenerateResult(commands=tuple(commands), explanation=explanation)


def find_control_operator(command: str) -> str | None:
    """Return the first unquoted, unescaped shell control operator in ``command``.

    Raises ``ValueError`` for unbalanced quoting.
    """

    shlex.split(command)
    for match in SHELL_TOKEN_RE.finditer(command):
        if match.lastgroup == "operator":
            return match.group()
    return None


def check_command_syntax(commands: Sequence[str], raw: str) -> None:
    for index, command in enumerate(commands, start=1):
        try:
            operator = find_control_operator(command)
        except ValueError as exc:
            raise ResponseValidationError(f"Command {index} has unbalanced quoting: {exc}", raw) from exc
        if operator is not None:
            raise ResponseValidationError(
                f"Command {index} chains shell commands with {operator!r}; expected one independent command",
                raw,
            )


def validate_response(raw: str) -> GenerateResult:
    result = parse_response(normalize_response(raw), raw)
    check_command_syntax(result.commands, raw)
    logger.debug("response.valid commands={}", len(result.commands))
    return result
