"""
Impact assessment: validation, classification, ordering and manual override.

Scores are out of 100 across five dimensions (see BREAKDOWN_DIMENSIONS).
Tier 1 assessments come from generation, tier 2 are human overrides that
replace tier 1 wholesale, tier 3 is a validated business case (accepted,
never produced here).
"""

import logging
from datetime import datetime
from typing import Optional

from reqflow.lib.models import (
    BREAKDOWN_DIMENSIONS,
    Complexity,
    ImpactAssessment,
    ImpactBreakdown,
    Request,
    format_timestamp,
    utc_now,
)
from reqflow.lib.validate import ValidationError, validate

logger = logging.getLogger(__name__)

SCORE_TOLERANCE = 0.01

HIGH_IMPACT_THRESHOLD = 80
MEDIUM_IMPACT_THRESHOLD = 60
QUICK_WIN_THRESHOLD = 70

TIER_AI = 1
TIER_OVERRIDE = 2
TIER_BUSINESS_CASE = 3

AI_ASSESSOR = "AI"


def _breakdown_sum(breakdown: dict) -> float:
    return sum(breakdown.get(wire, 0) for wire in BREAKDOWN_DIMENSIONS)


def validate_assessment(data: dict, strict_sum: bool = False) -> None:
    """
    Validate a wire-format impact assessment.

    Shape, ranges, tier and a non-blank justification are hard failures.
    A breakdown that doesn't add up to totalScore (beyond SCORE_TOLERANCE)
    is logged, or rejected when strict_sum is set.

    Raises:
        ValidationError: If the assessment is rejected
    """
    validate(data, "impact_assessment")

    total = data["totalScore"]
    summed = _breakdown_sum(data["breakdown"])
    if abs(summed - total) >= SCORE_TOLERANCE:
        message = f"breakdown sums to {summed}, totalScore is {total}"
        if strict_sum:
            raise ValidationError("impact_assessment", message, "totalScore")
        logger.warning(f"[IMPACT] Inconsistent assessment: {message}")


def parse_assessment(data: dict, strict_sum: bool = False) -> ImpactAssessment:
    """Validate then convert. Untrusted data goes through here, never from_dict directly."""
    validate_assessment(data, strict_sum=strict_sum)
    return ImpactAssessment.from_dict(data)


def scores_consistent(assessment: ImpactAssessment) -> bool:
    return abs(assessment.breakdown.total() - assessment.total_score) < SCORE_TOLERANCE


def has_impact_assessment(request: Request) -> bool:
    return request.impact_assessment is not None


def impact_score(request: Request) -> float:
    """Total score, 0 when unassessed."""
    if request.impact_assessment is None:
        return 0
    return request.impact_assessment.total_score


def impact_tier(request: Request) -> Optional[int]:
    if request.impact_assessment is None:
        return None
    return request.impact_assessment.tier


def badge_variant(request: Request) -> str:
    """'high', 'medium', 'low', or 'none' for unassessed requests."""
    if request.impact_assessment is None:
        return "none"
    score = request.impact_assessment.total_score
    if score >= HIGH_IMPACT_THRESHOLD:
        return "high"
    if score >= MEDIUM_IMPACT_THRESHOLD:
        return "medium"
    return "low"


def is_quick_win(request: Request) -> bool:
    """High impact (strictly above 70) and simple complexity."""
    if request.impact_assessment is None:
        return False
    return (
        request.impact_assessment.total_score > QUICK_WIN_THRESHOLD
        and request.complexity == Complexity.SIMPLE
    )


def sort_by_impact_score(requests: list[Request]) -> list[Request]:
    """Assessed requests by score descending, then unassessed in input order.

    Stable for equal scores. Returns a new list.
    """
    assessed = [r for r in requests if r.impact_assessment is not None]
    unassessed = [r for r in requests if r.impact_assessment is None]
    assessed = sorted(assessed, key=lambda r: r.impact_assessment.total_score, reverse=True)
    return assessed + unassessed


def build_override(
    breakdown: ImpactBreakdown,
    justification: str,
    assessed_by: str,
    now: Optional[datetime] = None,
    dependencies: Optional[list[str]] = None,
    risks: Optional[list[str]] = None,
    customer_commitment: Optional[bool] = None,
    competitive_intel: Optional[str] = None,
    strict_sum: bool = False,
) -> ImpactAssessment:
    """
    Build a tier 2 (human override) assessment.

    The total is the sum of the breakdown. Nothing is carried over from any
    previous assessment.

    Raises:
        ValidationError: If justification is blank or any score is out of range
    """
    justification = justification.strip()
    if not justification:
        raise ValidationError("impact_assessment", "justification is required for an override", "justification")

    data = {
        "totalScore": breakdown.total(),
        "breakdown": breakdown.to_dict(),
        "tier": TIER_OVERRIDE,
        "assessedAt": format_timestamp(now or utc_now()),
        "assessedBy": assessed_by,
        "justification": justification,
        "dependencies": [d.strip() for d in dependencies or [] if d.strip()],
        "risks": [r.strip() for r in risks or [] if r.strip()],
    }
    if customer_commitment is not None:
        data["customerCommitment"] = customer_commitment
    if competitive_intel and competitive_intel.strip():
        data["competitiveIntel"] = competitive_intel.strip()

    return parse_assessment(data, strict_sum=strict_sum)


def assessment_from_generation(
    data: dict,
    now: Optional[datetime] = None,
    strict_sum: bool = False,
) -> ImpactAssessment:
    """
    Turn a generated score into a tier 1 assessment.

    Generation output is untrusted: provenance fields are always overwritten
    here and the result is validated like any other assessment.

    Raises:
        ValidationError: If the generated score is malformed or out of range
    """
    validate(data, "impact_score")
    stamped = dict(data)
    stamped.update({
        "tier": TIER_AI,
        "assessedAt": format_timestamp(now or utc_now()),
        "assessedBy": AI_ASSESSOR,
    })
    return parse_assessment(stamped, strict_sum=strict_sum)
