"""Pydantic models for Lead Radar data structures."""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Literal reply meaning "do not contact"
SKIP_SENTINEL = "SKIP"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _clamp_score(value: Any) -> int:
    return max(0, min(10, int(value)))


class EstimatedSize(str, Enum):
    """Estimated company size."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Verdict(str, Enum):
    """Qualification verdict, valued with the labels the model emits."""

    CONTACT = "CONTACTER"
    IGNORE = "IGNORER"


class Segment(str, Enum):
    """Audience segment driving the message template."""

    ARTISAN = "Artisan"
    B2B = "B2B"
    FREELANCE_SME = "Freelance / PME"


class ImprovementCategory(str, Enum):
    """Closed set of improvement categories used as the dedup key."""

    # No-website angles
    VISIBILITE = "visibilite"
    DISPONIBILITE = "disponibilite"
    CONTACT = "contact"
    CREDIBILITE = "credibilite"
    PREUVE_SOCIALE = "preuve-sociale"

    # Detected issues
    SECURITE = "securite"
    MOBILE = "mobile"
    VITESSE = "vitesse"
    REFERENCEMENT = "referencement"
    DESCRIPTION = "description"
    EXPERIENCE = "experience"

    # Detected opportunities
    FORMULAIRE = "formulaire"
    TEMOIGNAGES = "temoignages"
    PORTFOLIO = "portfolio"
    RESEAUX_SOCIAUX = "reseaux-sociaux"
    CONVERSION = "conversion"

    # Generic backfill
    CONCURRENCE = "concurrence"
    TELEPHONE = "telephone"
    MANQUE_GAGNER = "manque-gagner"
    VALORISATION = "valorisation"
    EFFICACITE = "efficacite"


class WebsiteSignals(BaseModel):
    """Signals derived from one fetch of a business website.

    Issues and opportunities keep detection order; the improvement
    selector uses that order as priority.
    """

    model_config = ConfigDict(frozen=True)

    exists: bool = Field(default=False, description="Site answered with a 2xx")
    load_time_ms: Optional[int] = Field(
        default=None, ge=0, description="Wall time of the GET in milliseconds"
    )
    has_mobile_viewport: Optional[bool] = Field(default=None)
    has_ssl: bool = Field(default=False, description="URL uses https://")
    page_title: Optional[str] = Field(default=None)
    meta_description: Optional[str] = Field(default=None)
    has_contact_affordance: Optional[bool] = Field(
        default=None, description="A form, contact link or mailto link exists"
    )
    issues: Tuple[str, ...] = Field(default_factory=tuple)
    opportunities: Tuple[str, ...] = Field(default_factory=tuple)

    def has_findings(self) -> bool:
        """True when at least one issue or opportunity was detected."""
        return bool(self.issues or self.opportunities)


class ImprovementItem(BaseModel):
    """A sales-oriented improvement talking point.

    ``category`` is internal: it is excluded from ``model_dump()``.
    """

    title: str
    description: str
    category: ImprovementCategory = Field(..., exclude=True)


class BusinessEntity(BaseModel):
    """Read-only view of a business used by scoring and the selector."""

    name: str = Field(..., description="Business name")
    category: str = Field(default="business", description="Primary place type")
    rating: float = Field(default=0.0, description="Google rating out of 5")
    review_count: int = Field(default=0, ge=0, description="Number of reviews")
    has_website: bool = Field(default=False)
    website_signals: Optional[WebsiteSignals] = Field(default=None)
    website_summary: str = Field(
        default="", description="Natural-language analysis summary for prompts"
    )


class ScoringResult(BaseModel):
    """Score, size estimate and prospecting message for one business."""

    score: int = Field(default=0, description="Lead relevance between 0 and 10")
    estimated_size: EstimatedSize = Field(default=EstimatedSize.SMALL)
    reasoning: str = Field(default="")
    message: str = Field(default=SKIP_SENTINEL)

    @field_validator("score", mode="before")
    @classmethod
    def validate_score(cls, v: Any) -> int:
        """Clamp score to the 0-10 range."""
        return _clamp_score(v)

    @property
    def is_skip(self) -> bool:
        return is_skip_content(self.message)

    def is_contact_worthy(self, threshold: int = 6) -> bool:
        """Check whether the lead should be persisted and contacted."""
        return self.score >= threshold and not self.is_skip


class QualificationResult(BaseModel):
    """Qualification of a raw lead. All four fields are mandatory."""

    score: int = Field(..., description="Score out of 10")
    verdict: Verdict
    segment: Segment
    justification: str = Field(..., min_length=1)

    @field_validator("score", mode="before")
    @classmethod
    def validate_score(cls, v: Any) -> int:
        """Clamp score to the 0-10 range."""
        return _clamp_score(v)

    @property
    def status(self) -> str:
        """Lead status stored alongside the qualification."""
        return "qualified" if self.verdict == Verdict.CONTACT else "archived"


class GeneratedMessage(BaseModel):
    """A generated prospecting message. ``SKIP`` means do not contact."""

    content: str
    score: Optional[int] = Field(
        default=None, description="Project score when the template asks for one"
    )

    @property
    def is_skip(self) -> bool:
        return is_skip_content(self.content)


def is_skip_content(content: str) -> bool:
    """A message that is, or starts with, the SKIP sentinel."""
    return content.strip().startswith(SKIP_SENTINEL)


class RawLead(BaseModel):
    """Lead submitted for qualification."""

    company_name: str
    city: str = ""
    sector: str = ""
    source: str = "manual"
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class MessageInput(BaseModel):
    """Input of the message generator."""

    company_name: str
    segment: Segment
    city: str = ""
    problem_detected: str = ""
    business_angle: str = ""


class PlaceRecord(BaseModel):
    """A place returned by the Google Places lookup."""

    place_id: str
    name: str
    address: str = ""
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    types: List[str] = Field(default_factory=list)

    @property
    def primary_type(self) -> str:
        return self.types[0] if self.types else "business"

    def to_business_entity(
        self,
        website_signals: Optional[WebsiteSignals] = None,
        website_summary: str = "",
    ) -> BusinessEntity:
        """Build the scoring view of this place."""
        return BusinessEntity(
            name=self.name,
            category=self.primary_type,
            rating=self.rating or 0.0,
            review_count=self.review_count or 0,
            has_website=bool(self.website),
            website_signals=website_signals,
            website_summary=website_summary,
        )


class FeedItem(BaseModel):
    """A project published on the freelance RSS feed."""

    title: str
    description: str = ""
    link: str
    published_at: Optional[datetime] = None

    def age_hours(self, now: Optional[datetime] = None) -> float:
        """Hours since publication; 0 when the date is unknown."""
        if self.published_at is None:
            return 0.0
        now = now or utcnow()
        published = self.published_at
        if published.tzinfo is None:
            published = published.replace(tzinfo=timezone.utc)
        return (now - published).total_seconds() / 3600

    def is_within_age_limit(
        self, max_age_hours: float, now: Optional[datetime] = None
    ) -> bool:
        return self.age_hours(now) <= max_age_hours

    def matches_skills(self, skills: Iterable[str]) -> bool:
        """Case-insensitive keyword match on title and description."""
        content = f"{self.title} {self.description}".lower()
        return any(skill.lower() in content for skill in skills)


class EventType(str, Enum):
    """Progress event types."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    COMPLETE = "complete"


class ProgressEvent(BaseModel):
    """A discrete progress log event emitted during a run."""

    type: EventType
    message: str
    data: Optional[Any] = None
    timestamp: datetime = Field(default_factory=utcnow)

    def to_sse(self) -> str:
        """Encode as a server-sent event frame."""
        payload = self.model_dump(mode="json")
        return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class ItemOutcome(str, Enum):
    """Outcome of processing one lead or project."""

    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_LOW_SCORE = "skipped_low_score"
    QUALIFIED = "qualified"
    ERROR = "error"


class RunSummary(BaseModel):
    """Final tally of a run, carried by the terminal ``complete`` event."""

    total: int = Field(default=0, description="Items fetched from the source")
    matched: int = Field(default=0, description="Items passing the filters")
    processed: int = Field(default=0, description="Items that were not duplicates")
    qualified: int = Field(default=0)
    rejected: int = Field(default=0, description="Low score or SKIP")
    skipped: int = Field(default=0, description="Already persisted")
    errors: int = Field(default=0)
    cancelled: bool = Field(default=False)
    error: Optional[str] = Field(default=None, description="Fatal error, if any")

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Iterable[ItemOutcome],
        total: int = 0,
        matched: int = 0,
    ) -> "RunSummary":
        """Fold a list of item outcomes into a summary."""
        counts = {outcome: 0 for outcome in ItemOutcome}
        for outcome in outcomes:
            counts[outcome] += 1

        skipped = counts[ItemOutcome.SKIPPED_DUPLICATE]
        processed = sum(counts.values()) - skipped
        return cls(
            total=total,
            matched=matched,
            processed=processed,
            qualified=counts[ItemOutcome.QUALIFIED],
            rejected=counts[ItemOutcome.SKIPPED_LOW_SCORE],
            skipped=skipped,
            errors=counts[ItemOutcome.ERROR],
        )
