"""Parse and repair structured output from the generation model.

Pure functions, no I/O.  Model output is parsed in two stages:

1. Strict parse of the whole (stripped) text.
2. If that fails, locate the first opening ``{`` or ``[`` and its
   *matching* closer -- tracking nesting depth and skipping delimiters
   that appear inside string literals -- and parse only that span.  This
   recovers payloads wrapped in explanatory prose or markdown fences,
   where a naive first-brace/last-brace slice would swallow trailing
   text containing stray braces.

Parsing returns a tagged result (:class:`ParseOk` / :class:`ParseMalformed`)
instead of raising.  :func:`repair` is the single place that turns a
malformed result or a schema violation into :class:`MalformedOutput`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import orjson
from pydantic import BaseModel, ValidationError

from src.models.content import (
    EmergencyMessagePayload,
    LegalCardPayload,
    ScriptPayload,
)
from src.models.enums import ContentKind
from src.services.errors import MalformedOutput

if TYPE_CHECKING:
    from src.models.content import ContentRequest

_OPENERS: Final[dict[str, str]] = {"{": "}", "[": "]"}
_CLOSERS: Final[frozenset[str]] = frozenset(_OPENERS.values())


# ---------------------------------------------------------------------------
# Tagged parse result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParseOk:
    value: Any
    repaired: bool = False


@dataclass(frozen=True, slots=True)
class ParseMalformed:
    reason: str


ParseResult = ParseOk | ParseMalformed


# ---------------------------------------------------------------------------
# Boundary matching
# ---------------------------------------------------------------------------


def extract_balanced_span(text: str) -> str | None:
    """Return the first balanced ``{...}`` or ``[...]`` span in *text*.

    Scanning starts at the first opening delimiter.  Delimiters inside
    double-quoted strings (including escaped quotes) are ignored.  A
    closer that does not match the innermost opener means the span is
    broken, and ``None`` is returned, as it is when no opener exists or
    the text ends before the span closes.
    """
    start = -1
    for index, char in enumerate(text):
        if char in _OPENERS:
            start = index
            break
    if start == -1:
        return None

    stack: list[str] = []
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in _OPENERS:
            stack.append(_OPENERS[char])
        elif char in _CLOSERS:
            if not stack or stack[-1] != char:
                return None
            stack.pop()
            if not stack:
                return text[start : index + 1]

    return None


def parse_structured(raw: str) -> ParseResult:
    """Parse *raw* as JSON, falling back to the first balanced span."""
    stripped = raw.strip()
    if not stripped:
        return ParseMalformed("empty output")

    try:
        return ParseOk(orjson.loads(stripped))
    except orjson.JSONDecodeError:
        pass

    span = extract_balanced_span(stripped)
    if span is None:
        return ParseMalformed("no balanced structured payload found")

    try:
        return ParseOk(orjson.loads(span), repaired=True)
    except orjson.JSONDecodeError as exc:
        return ParseMalformed(f"embedded payload is not valid JSON: {exc}")


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


def validate_payload(kind: ContentKind, value: Any, request: ContentRequest) -> BaseModel:
    """Validate a parsed value against the payload schema for *kind*.

    Script payloads take ``scenario``, ``language`` and the premium flag
    from the request rather than trusting the model to echo them back.

    Raises
    ------
    MalformedOutput
        If the value does not satisfy the schema.
    """
    if not isinstance(value, dict):
        raise MalformedOutput(f"expected a JSON object for {kind}, got {type(value).__name__}")

    try:
        if kind == ContentKind.LEGAL_CARD:
            return LegalCardPayload.model_validate(value)
        if kind == ContentKind.SCRIPT:
            merged = {
                **value,
                "scenario": request.key,
                "language": request.language,
                "is_premium_tier": request.is_premium,
            }
            return ScriptPayload.model_validate(merged)
        return EmergencyMessagePayload.model_validate(value)
    except ValidationError as exc:
        raise MalformedOutput(f"{kind} payload failed schema validation: {exc.error_count()} error(s)") from exc


def repair(kind: ContentKind, raw: str, request: ContentRequest) -> BaseModel:
    """Turn raw model output into a validated payload for *kind*.

    Emergency messages are plain text, so the stripped text itself is
    the message body; the other kinds go through the two-stage parse.
    """
    if kind == ContentKind.EMERGENCY_MESSAGE:
        text = raw.strip()
        if not text:
            raise MalformedOutput("emergency message text is empty")
        return validate_payload(
            kind,
            {"text": text, "subject": request.context.get("subject", "")},
            request,
        )

    result = parse_structured(raw)
    if isinstance(result, ParseMalformed):
        raise MalformedOutput(result.reason)
    return validate_payload(kind, result.value, request)
