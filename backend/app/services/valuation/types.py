"""
types.py — Shared Data Layer for Valuation Modules

Purpose:
- Define the plain data structures passed between the resolver, estimator,
  scoring, engine and pipeline modules.
- Provide the half-up rounding helpers every valuation path shares, so a
  preview and a persisted snapshot computed from the same inputs agree
  exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional

from app.core.config import DEFAULT_BRI_CATEGORY_WEIGHTS, Settings


MatchLevel = str  # "subsector" | "sector" | "supersector" | "industry" | "default"


def round_half_up(value: float, step: int = 1) -> float:
    """
    Round to the nearest multiple of `step`, halves away from zero.

    Example:
        round_half_up(2351999.9999999995) → 2352000.0
        round_half_up(650000, 100000) → 700000.0
    """
    scaled = Decimal(str(value)) / Decimal(step)
    return float(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP) * step)


def round_currency(value: float) -> float:
    """Round a monetary amount to whole currency units."""
    return round_half_up(value, 1)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# ============================================================================
# Configuration
# ============================================================================


@dataclass(frozen=True)
class ValuationConfig:
    """
    Constants injected into the scoring functions and the valuation engine.
    """
    alpha: float = 0.4
    default_core_score: float = 1.0
    unanswered_category_score: float = 0.7
    category_weights: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_BRI_CATEGORY_WEIGHTS)
    )
    implied_margin_cap: float = 0.35
    onboarding_task_bri_lift: float = 0.02

    @classmethod
    def from_settings(cls, settings: Settings) -> "ValuationConfig":
        return cls(
            alpha=settings.VALUATION_ALPHA,
            default_core_score=settings.DEFAULT_CORE_SCORE,
            unanswered_category_score=settings.UNANSWERED_CATEGORY_SCORE,
            category_weights=dict(settings.BRI_CATEGORY_WEIGHTS),
            implied_margin_cap=settings.IMPLIED_EBITDA_MARGIN_CAP,
            onboarding_task_bri_lift=settings.ONBOARDING_TASK_BRI_LIFT,
        )


# ============================================================================
# Multiple Resolver
# ============================================================================


@dataclass
class MultipleResult:
    """
    Multiple range resolved for a classification path.

    `is_default` distinguishes real industry data from the hard-coded fallback.
    """
    ebitda_multiple_low: float
    ebitda_multiple_high: float
    revenue_multiple_low: float
    revenue_multiple_high: float
    match_level: MatchLevel
    is_default: bool
    source: Optional[str] = None
    ebitda_margin_low: Optional[float] = None
    ebitda_margin_high: Optional[float] = None
    industry_name: Optional[str] = None

    @property
    def has_margin_range(self) -> bool:
        return self.ebitda_margin_low is not None and self.ebitda_margin_high is not None


# ============================================================================
# Readiness Scoring
# ============================================================================


@dataclass
class ScoringResponse:
    """One assessment response, flattened for the pure scoring functions."""
    question_id: int
    bri_category: str
    max_impact_points: float
    score_value: Optional[float]  # None → don't know / not applicable
    updated_at: Optional[object] = None

    @property
    def has_option(self) -> bool:
        return self.score_value is not None


@dataclass
class CategoryScore:
    category: str
    total_points: float
    earned_points: float
    score: float


@dataclass
class BriResult:
    """Overall BRI plus the six category components (all 0-1)."""
    score: float
    categories: Dict[str, float]


# ============================================================================
# Valuation Engine
# ============================================================================


@dataclass
class ValuationInputs:
    adjusted_ebitda: float
    multiple_low: float
    multiple_high: float
    core_score: float
    bri_score: float


@dataclass
class ValuationResult:
    base_multiple: float
    discount_fraction: float
    final_multiple: float
    current_value: float
    potential_value: float
    value_gap: float


@dataclass
class ValuationPreview:
    """Snapshot-free preview returned before any assessment exists."""
    valuation_low: float
    valuation_high: float
    adjusted_ebitda: float
    ebitda_margin_percent: float
    multiple_low: float
    multiple_high: float
    industry_name: str
    has_industry_multiple: bool


@dataclass
class BatchResult:
    """Outcome of recalculating many companies."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    failed_company_ids: List[int] = field(default_factory=list)

    def as_dict(self) -> Dict[str, int]:
        return {"total": self.total, "successful": self.successful, "failed": self.failed}
