"""
multiples.py — Industry Multiple Resolver

Purpose:
- Map a company's classification path to an EBITDA/revenue multiple range.
- Resolution order: sub-sector → sector → super-sector → industry → default.
  First match wins; values are never blended across levels.
- Within a level the row with the latest effective date wins; rows keyed at
  exactly that level are preferred over more specific rows that share it.

Outputs:
- MultipleResult with `match_level` and `is_default` so callers can tell
  real industry data from the fallback range.
"""

from typing import List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import Settings, settings as default_settings
from app.core.errors import InvalidInputError
from app.core.logging import get_logger
from app.models.company import Company
from app.models.industry_multiple import IndustryMultiple
from app.services.valuation.types import MultipleResult

logger = get_logger(__name__)

DEFAULT_SOURCE = "Default SMB multiple range"

# (match level, column on IndustryMultiple, more specific columns)
_LEVELS = (
    ("subsector", "icb_sub_sector", ()),
    ("sector", "icb_sector", ("icb_sub_sector",)),
    ("supersector", "icb_super_sector", ("icb_sector", "icb_sub_sector")),
    ("industry", "icb_industry", ("icb_super_sector", "icb_sector", "icb_sub_sector")),
)


def default_multiples(settings: Settings = default_settings) -> MultipleResult:
    """
    Hard-coded fallback range used when no classification level matches.

    Revenue multiples are derived from the assumed margin so that the
    EV identity (revenue × revenue multiple = EBITDA × EBITDA multiple) holds.
    """
    margin = settings.DEFAULT_EBITDA_MARGIN
    return MultipleResult(
        ebitda_multiple_low=settings.DEFAULT_EBITDA_MULTIPLE_LOW,
        ebitda_multiple_high=settings.DEFAULT_EBITDA_MULTIPLE_HIGH,
        revenue_multiple_low=round(settings.DEFAULT_EBITDA_MULTIPLE_LOW * margin, 4),
        revenue_multiple_high=round(settings.DEFAULT_EBITDA_MULTIPLE_HIGH * margin, 4),
        ebitda_margin_low=margin,
        ebitda_margin_high=margin,
        match_level="default",
        is_default=True,
        source=DEFAULT_SOURCE,
    )


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def classification_label(
    industry: Optional[str],
    super_sector: Optional[str] = None,
    sector: Optional[str] = None,
    sub_sector: Optional[str] = None,
) -> str:
    """Most specific populated level of a classification path."""
    for name in (sub_sector, sector, super_sector, industry):
        if _clean(name):
            return _clean(name)
    return "General Industry"


def _to_result(row: IndustryMultiple, match_level: str) -> MultipleResult:
    return MultipleResult(
        ebitda_multiple_low=float(row.ebitda_multiple_low),
        ebitda_multiple_high=float(row.ebitda_multiple_high),
        revenue_multiple_low=float(row.revenue_multiple_low),
        revenue_multiple_high=float(row.revenue_multiple_high),
        ebitda_margin_low=None if row.ebitda_margin_low is None else float(row.ebitda_margin_low),
        ebitda_margin_high=None if row.ebitda_margin_high is None else float(row.ebitda_margin_high),
        match_level=match_level,
        is_default=False,
        source=row.source,
    )


def resolve_multiples(
    db: Session,
    industry: str,
    super_sector: Optional[str] = None,
    sector: Optional[str] = None,
    sub_sector: Optional[str] = None,
    sub_sector_override: Optional[str] = None,
    settings: Settings = default_settings,
) -> MultipleResult:
    """
    Resolve the multiple range for a classification path.

    Args:
        db: Session
        industry: Top-level classification (required)
        super_sector / sector / sub_sector: Optional narrower levels
        sub_sector_override: Sub-sector to try instead of `sub_sector`

    Raises:
        InvalidInputError: If industry is missing or blank
    """
    industry = _clean(industry)
    if not industry:
        raise InvalidInputError("Classification must include an industry")

    path = {
        "icb_sub_sector": _clean(sub_sector_override) or _clean(sub_sector),
        "icb_sector": _clean(sector),
        "icb_super_sector": _clean(super_sector),
        "icb_industry": industry,
    }

    for match_level, column_name, narrower in _LEVELS:
        value = path[column_name]
        if not value:
            continue

        column = getattr(IndustryMultiple, column_name)
        ordering = [getattr(IndustryMultiple, c).is_(None).desc() for c in narrower]
        row = (
            db.query(IndustryMultiple)
            .filter(column == value)
            .order_by(*ordering, IndustryMultiple.effective_date.desc(), IndustryMultiple.id.desc())
            .first()
        )
        if row is not None:
            result = _to_result(row, match_level)
            result.industry_name = classification_label(
                industry, path["icb_super_sector"], path["icb_sector"], path["icb_sub_sector"]
            )
            logger.debug("Resolved multiples for %s at %s level (row %s)", value, match_level, row.id)
            return result

    result = default_multiples(settings)
    result.industry_name = classification_label(
        industry, path["icb_super_sector"], path["icb_sector"], path["icb_sub_sector"]
    )
    logger.info("No industry multiple for %s; using default range", result.industry_name)
    return result


def resolve_for_company(
    db: Session,
    company: Company,
    sub_sector_override: Optional[str] = None,
    settings: Settings = default_settings,
) -> MultipleResult:
    return resolve_multiples(
        db,
        industry=company.icb_industry,
        super_sector=company.icb_super_sector,
        sector=company.icb_sector,
        sub_sector=company.icb_sub_sector,
        sub_sector_override=sub_sector_override,
        settings=settings,
    )


def find_affected_companies(db: Session, rows: Sequence[IndustryMultiple]) -> List[Company]:
    """
    Companies whose classification matches any level of any of the given rows.
    """
    conditions = []
    for row in rows:
        if row.icb_sub_sector:
            conditions.append(Company.icb_sub_sector == row.icb_sub_sector)
        if row.icb_sector:
            conditions.append(Company.icb_sector == row.icb_sector)
        if row.icb_super_sector:
            conditions.append(Company.icb_super_sector == row.icb_super_sector)
        if row.icb_industry:
            conditions.append(Company.icb_industry == row.icb_industry)

    if not conditions:
        return []

    return db.query(Company).filter(or_(*conditions)).order_by(Company.id).all()
