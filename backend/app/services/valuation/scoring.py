"""
scoring.py — Core Score & Buyer Readiness Index (BRI) Aggregation

Purpose:
- Reduce a company's structural profile (CoreFactors) to a Core Score in [0, 1].
- Reduce assessment responses to six category scores and a weighted BRI in [0, 1].

Core Score:
- Mean of five factor scores. Revenue size is recorded on CoreFactors but is
  not a durability factor and is excluded. Unknown factor values score 0.5;
  a company with no CoreFactors gets the configured default.

BRI:
- Responses are de-duplicated to the latest per question.
- Category score = Σ(points × score) / Σ points. A response with no option
  (don't know / not applicable) is credited the conservative unanswered score
  rather than zero, and a category with no responses at all takes that score.
- Overall BRI = weighted mean of the six categories, weights normalized by
  their sum. Direct category adjustments from onboarding tasks are added
  after aggregation and clamped.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.assessment import AssessmentResponse, BriCategoryAdjustment
from app.models.company import Company, CoreFactors
from app.models.enums import BRI_CATEGORIES
from app.services.valuation.types import (
    BriResult,
    CategoryScore,
    ScoringResponse,
    ValuationConfig,
    clamp,
)

logger = get_logger(__name__)

UNKNOWN_FACTOR_SCORE = 0.5

CORE_FACTOR_SCORES: Dict[str, Dict[str, float]] = {
    "revenue_model": {
        "PROJECT_BASED": 0.25,
        "TRANSACTIONAL": 0.5,
        "RECURRING_CONTRACTS": 0.75,
        "SUBSCRIPTION_SAAS": 1.0,
    },
    "gross_margin_proxy": {
        "LOW": 0.25,
        "MODERATE": 0.5,
        "GOOD": 0.75,
        "EXCELLENT": 1.0,
    },
    "labor_intensity": {
        "VERY_HIGH": 0.25,
        "HIGH": 0.5,
        "MODERATE": 0.75,
        "LOW": 1.0,
    },
    "asset_intensity": {
        "ASSET_HEAVY": 0.33,
        "MODERATE": 0.67,
        "ASSET_LIGHT": 1.0,
    },
    "owner_involvement": {
        "CRITICAL": 0.0,
        "HIGH": 0.25,
        "MODERATE": 0.5,
        "LOW": 0.75,
        "MINIMAL": 1.0,
    },
}


# -----------------------------------------------------------------------------
# Core Score
# -----------------------------------------------------------------------------

def calculate_core_score(core_factors: Optional[CoreFactors], default_score: float = 1.0) -> float:
    """
    Structural durability score in [0, 1].

    Args:
        core_factors: Company profile, or None before onboarding collects it
        default_score: Score used when core_factors is None
    """
    if core_factors is None:
        return clamp(default_score)

    scores = []
    for factor, levels in CORE_FACTOR_SCORES.items():
        value = getattr(core_factors, factor, None)
        scores.append(levels.get(value, UNKNOWN_FACTOR_SCORE))

    return clamp(sum(scores) / len(scores))


# -----------------------------------------------------------------------------
# BRI (pure functions)
# -----------------------------------------------------------------------------

def deduplicate_responses(responses: Iterable[ScoringResponse]) -> Dict[int, ScoringResponse]:
    """
    Keep the most recently updated response per question.

    Responses without a timestamp lose to any timestamped one; among equal
    timestamps the first seen wins.
    """
    latest: Dict[int, ScoringResponse] = {}
    for response in responses:
        current = latest.get(response.question_id)
        if current is None:
            latest[response.question_id] = response
            continue
        if current.updated_at is None and response.updated_at is not None:
            latest[response.question_id] = response
        elif (
            current.updated_at is not None
            and response.updated_at is not None
            and response.updated_at > current.updated_at
        ):
            latest[response.question_id] = response
    return latest


def calculate_category_scores(
    responses: Mapping[int, ScoringResponse],
    unanswered_score: float = 0.7,
) -> List[CategoryScore]:
    """
    Points-weighted score for every category that has at least one response.
    """
    total_points: Dict[str, float] = defaultdict(float)
    earned_points: Dict[str, float] = defaultdict(float)

    for response in responses.values():
        points = max(0.0, float(response.max_impact_points or 0.0))
        if points == 0:
            continue
        score = response.score_value if response.has_option else unanswered_score
        total_points[response.bri_category] += points
        earned_points[response.bri_category] += points * clamp(score)

    return [
        CategoryScore(
            category=category,
            total_points=total_points[category],
            earned_points=earned_points[category],
            score=earned_points[category] / total_points[category],
        )
        for category in total_points
    ]


def resolve_category_weights(
    company_weights: Optional[Mapping[str, float]],
    default_weights: Mapping[str, float],
) -> Dict[str, float]:
    """
    Company override if it is a usable mapping, otherwise the configured defaults.
    """
    if company_weights and isinstance(company_weights, Mapping):
        try:
            weights = {c: float(company_weights.get(c, 0.0)) for c in BRI_CATEGORIES}
        except (TypeError, ValueError):
            weights = None
        if weights and all(w >= 0 for w in weights.values()) and sum(weights.values()) > 0:
            return weights
        logger.warning("Ignoring unusable company BRI weights: %s", company_weights)

    return {c: float(default_weights.get(c, 0.0)) for c in BRI_CATEGORIES}


def calculate_bri(
    category_scores: Iterable[CategoryScore],
    weights: Mapping[str, float],
    unanswered_score: float = 0.7,
    adjustments: Optional[Mapping[str, float]] = None,
) -> BriResult:
    """
    Combine category scores into the six-component BRI.

    Categories without responses take `unanswered_score`; adjustments are
    added per category and each component is clamped to [0, 1].
    """
    by_category = {cs.category: cs.score for cs in category_scores}
    adjustments = adjustments or {}

    categories: Dict[str, float] = {}
    for category in BRI_CATEGORIES:
        base = by_category.get(category, unanswered_score)
        categories[category] = clamp(base + adjustments.get(category, 0.0))

    total_weight = sum(max(0.0, weights.get(c, 0.0)) for c in BRI_CATEGORIES)
    if total_weight <= 0:
        overall = sum(categories.values()) / len(categories)
    else:
        overall = sum(
            categories[c] * max(0.0, weights.get(c, 0.0)) for c in BRI_CATEGORIES
        ) / total_weight

    return BriResult(score=clamp(overall), categories=categories)


# -----------------------------------------------------------------------------
# BRI (database-backed)
# -----------------------------------------------------------------------------

def load_scoring_responses(db: Session, company_id: int) -> List[ScoringResponse]:
    """
    Effective answers for a company: the upgraded option when a task set one,
    the user's selection otherwise.
    """
    rows = (
        db.query(AssessmentResponse)
        .filter(AssessmentResponse.company_id == company_id)
        .order_by(AssessmentResponse.updated_at.desc(), AssessmentResponse.id.desc())
        .all()
    )

    responses = []
    for row in rows:
        option = row.effective_option or row.selected_option
        responses.append(
            ScoringResponse(
                question_id=row.question_id,
                bri_category=row.question.bri_category,
                max_impact_points=float(row.question.max_impact_points),
                score_value=None if option is None else float(option.score_value),
                updated_at=row.updated_at,
            )
        )
    return responses


def load_category_adjustments(db: Session, company_id: int) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    rows = db.query(BriCategoryAdjustment).filter(BriCategoryAdjustment.company_id == company_id).all()
    for row in rows:
        totals[row.category] += float(row.delta)
    return dict(totals)


def compute_company_bri(db: Session, company: Company, config: ValuationConfig) -> BriResult:
    """
    BRI from the current set of effective answers plus onboarding adjustments.
    """
    deduped = deduplicate_responses(load_scoring_responses(db, company.id))
    category_scores = calculate_category_scores(deduped, config.unanswered_category_score)
    weights = resolve_category_weights(company.bri_weights, config.category_weights)
    return calculate_bri(
        category_scores,
        weights,
        unanswered_score=config.unanswered_category_score,
        adjustments=load_category_adjustments(db, company.id),
    )
