# heuristics.py
"""Deterministic point-based scoring used without a model call."""

from typing import List, Tuple

from .models import BusinessEntity, EstimatedSize, ScoringResult, SKIP_SENTINEL
from .website_analyzer import summarize_opportunities

MAX_SCORE = 10
CONTACT_THRESHOLD = 6


def _website_summary(entity: BusinessEntity) -> str:
    if entity.website_summary:
        return entity.website_summary
    if entity.website_signals is not None:
        return summarize_opportunities(entity.website_signals)
    return ""


def _rules(entity: BusinessEntity) -> List[Tuple[int, str]]:
    """Point contributions in saturation order, earlier rules first."""
    points: List[Tuple[int, str]] = []

    if entity.review_count > 100:
        points.append((3, "Forte activité (100+ avis)"))
    elif entity.review_count > 30:
        points.append((2, "Activité correcte"))

    if entity.rating >= 4.0:
        points.append((2, "Bonne réputation"))

    if not entity.has_website:
        points.append((3, "Pas de site = grosse opportunité"))
    elif "problème" in _website_summary(entity):
        points.append((2, "Site à améliorer"))

    return points


def estimate_size(review_count: int) -> EstimatedSize:
    """Estimate company size from its review count."""
    if review_count > 200:
        return EstimatedSize.LARGE
    if review_count > 50:
        return EstimatedSize.MEDIUM
    return EstimatedSize.SMALL


def score_simple(entity: BusinessEntity) -> ScoringResult:
    """Score a business with fixed rules.

    Each rule's points are capped at the headroom left under 10, so when
    the total would saturate the earlier rules keep their full weight.
    """
    score = 0
    reasons: List[str] = []

    for points, reason in _rules(entity):
        granted = min(points, MAX_SCORE - score)
        if granted <= 0:
            break
        score += granted
        reasons.append(reason)

    message = (
        f"Bonjour, j'ai remarqué votre établissement {entity.name} et je pense "
        "pouvoir vous aider à améliorer votre présence en ligne."
        if score >= CONTACT_THRESHOLD
        else SKIP_SENTINEL
    )

    return ScoringResult(
        score=score,
        estimated_size=estimate_size(entity.review_count),
        reasoning=", ".join(reasons),
        message=message,
    )
