# response_parser.py
"""Extraction of structured fields from free-text model replies.

Patterns are anchored on the labels defined in :mod:`prompts`.
Qualification replies must carry all four fields; scoring and messaging
replies fall back to safe defaults field by field.
"""

import re
from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar

from .models import (
    EstimatedSize,
    GeneratedMessage,
    QualificationResult,
    ScoringResult,
    Segment,
    SKIP_SENTINEL,
    Verdict,
)
from .prompts import (
    JUSTIFICATION_LABEL,
    MESSAGE_LABEL,
    NOTE_LABEL,
    REASONING_LABEL,
    SCORE_LABEL,
    SEGMENT_LABEL,
    SIZE_LABEL,
    VERDICT_LABEL,
)

T = TypeVar("T")

DEFAULT_SIZE = EstimatedSize.SMALL
DEFAULT_SCORE = 0
DEFAULT_REASONING = "Pas d'analyse disponible"
DEFAULT_MESSAGE = SKIP_SENTINEL


def _alternation(values: List[str]) -> str:
    return "|".join(re.escape(value) for value in values)


QUALIFICATION_SCORE_PATTERN = re.compile(rf"{SCORE_LABEL}:\s*(\d+)")
VERDICT_PATTERN = re.compile(
    rf"{VERDICT_LABEL}:\s*({_alternation([v.value for v in Verdict])})"
)
SEGMENT_PATTERN = re.compile(
    rf"{SEGMENT_LABEL}:\s*({_alternation([s.value for s in Segment])})"
)
JUSTIFICATION_PATTERN = re.compile(rf"{JUSTIFICATION_LABEL}:\s*(.*)")

SIZE_PATTERN = re.compile(
    rf"{SIZE_LABEL}:\s*({_alternation([s.value for s in EstimatedSize])})",
    re.IGNORECASE,
)
NOTE_PATTERN = re.compile(rf"{NOTE_LABEL}:\s*(\d+)/10")
REASONING_PATTERN = re.compile(
    rf"{REASONING_LABEL}:\s*(.+?)(?={MESSAGE_LABEL}:)", re.DOTALL
)
MESSAGE_PATTERN = re.compile(rf"{MESSAGE_LABEL}:\s*(.+)", re.DOTALL)
MESSAGE_BODY_PATTERN = re.compile(rf"{MESSAGE_LABEL}:(.*)", re.DOTALL)


class InvalidModelResponseError(ValueError):
    """Raised when a model reply lacks a mandatory field."""

    def __init__(self, missing: Optional[List[str]] = None):
        self.missing = missing or []
        message = "Invalid AI response"
        if self.missing:
            message = f"{message}: missing {', '.join(self.missing)}"
        super().__init__(message)


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Success or failure of a parse, for callers choosing their own recovery.

    Attributes:
        value: Parsed value on success.
        error: The error on failure.
    """

    value: Optional[T] = None
    error: Optional[InvalidModelResponseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "ParseResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: InvalidModelResponseError) -> "ParseResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value


def try_parse_qualification(text: str) -> ParseResult[QualificationResult]:
    """Parse a qualification reply without raising.

    Score 0 is a valid extraction; an empty justification is not.
    """
    text = text or ""
    score_match = QUALIFICATION_SCORE_PATTERN.search(text)
    verdict_match = VERDICT_PATTERN.search(text)
    segment_match = SEGMENT_PATTERN.search(text)
    justification_match = JUSTIFICATION_PATTERN.search(text)
    justification = justification_match.group(1).strip() if justification_match else ""

    missing = [
        label
        for label, found in (
            (SCORE_LABEL, score_match),
            (VERDICT_LABEL, verdict_match),
            (SEGMENT_LABEL, segment_match),
            (JUSTIFICATION_LABEL, justification),
        )
        if not found
    ]
    if missing:
        return ParseResult.failure(InvalidModelResponseError(missing))

    return ParseResult.success(
        QualificationResult(
            score=int(score_match.group(1)),
            verdict=Verdict(verdict_match.group(1)),
            segment=Segment(segment_match.group(1)),
            justification=justification,
        )
    )


def parse_qualification(text: str) -> QualificationResult:
    """Parse a qualification reply.

    Raises:
        InvalidModelResponseError: If any of the four fields is missing.
    """
    return try_parse_qualification(text).unwrap()


def parse_scoring(text: str) -> ScoringResult:
    """Parse a business scoring reply, defaulting each missing field."""
    text = text or ""

    size_match = SIZE_PATTERN.search(text)
    note_match = NOTE_PATTERN.search(text)
    reasoning_match = REASONING_PATTERN.search(text)
    message_match = MESSAGE_PATTERN.search(text)

    reasoning = reasoning_match.group(1).strip() if reasoning_match else ""
    message = message_match.group(1).strip() if message_match else ""

    return ScoringResult(
        estimated_size=(
            EstimatedSize(size_match.group(1).lower()) if size_match else DEFAULT_SIZE
        ),
        score=int(note_match.group(1)) if note_match else DEFAULT_SCORE,
        reasoning=reasoning or DEFAULT_REASONING,
        message=message or DEFAULT_MESSAGE,
    )


def parse_note(text: str) -> Optional[int]:
    """Extract the optional ``NOTE: X/10`` score, clamped to 0-10."""
    match = NOTE_PATTERN.search(text or "")
    if not match:
        return None
    return max(0, min(10, int(match.group(1))))


def parse_message(text: str) -> GeneratedMessage:
    """Parse a message generation reply.

    The body is what follows the ``MESSAGE:`` label when present,
    otherwise the whole reply. An empty body becomes ``SKIP``.
    """
    text = (text or "").strip()
    body_match = MESSAGE_BODY_PATTERN.search(text)
    content = body_match.group(1).strip() if body_match else text

    return GeneratedMessage(
        content=content or SKIP_SENTINEL,
        score=parse_note(text),
    )
