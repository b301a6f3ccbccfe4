"""
industry_multiples.py — Industry Multiple Administration

Purpose:
- Validate multiple rows (ordered, non-negative ranges; industry required).
- Create / update a single row, then recalculate every company whose
  classification the row touches.
- Bulk-replace the whole table from CSV, then recalculate every company.

Bulk replace:
- Every row is validated before anything is written; one bad row rejects
  the whole import with its line number.
- The delete + insert is committed before recalculation starts, so a
  failing company never undoes the import.
- Per-company failures are counted, not raised (see recalculate_companies).

CSV columns:
    icb_industry, icb_super_sector, icb_sector, icb_sub_sector,
    ebitda_multiple_low, ebitda_multiple_high,
    revenue_multiple_low, revenue_multiple_high,
    ebitda_margin_low, ebitda_margin_high, effective_date, source
"""

import csv
import datetime
import io
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError, NotFoundError
from app.core.logging import get_logger
from app.models.company import Company
from app.models.enums import LedgerEventType
from app.models.industry_multiple import IndustryMultiple
from app.services.valuation.multiples import find_affected_companies
from app.services.valuation.recalculate import recalculate_companies
from app.services.valuation.types import BatchResult

logger = get_logger(__name__)

PATH_FIELDS = ("icb_industry", "icb_super_sector", "icb_sector", "icb_sub_sector")
RANGE_FIELDS = (
    ("ebitda_multiple_low", "ebitda_multiple_high"),
    ("revenue_multiple_low", "revenue_multiple_high"),
)
MARGIN_FIELDS = ("ebitda_margin_low", "ebitda_margin_high")
REQUIRED_CSV_COLUMNS = ("icb_industry",) + tuple(f for pair in RANGE_FIELDS for f in pair)


@dataclass
class ImportResult:
    imported: int
    recalculation: BatchResult = field(default_factory=BatchResult)

    def as_dict(self) -> Dict[str, int]:
        return {"imported": self.imported, **self.recalculation.as_dict()}


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------

def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(values: Mapping[str, Any], name: str, required: bool) -> Optional[float]:
    raw = values.get(name)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            raise InvalidInputError(f"{name} is required")
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number (got {raw!r})")
    if number < 0:
        raise InvalidInputError(f"{name} must not be negative (got {number})")
    return number


def _date(raw: Any) -> datetime.date:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return datetime.date.today()
    if isinstance(raw, datetime.date):
        return raw
    try:
        return datetime.date.fromisoformat(str(raw).strip())
    except ValueError:
        raise InvalidInputError(f"effective_date must be YYYY-MM-DD (got {raw!r})")


def validate_multiple_values(values: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Clean and check one row of multiple data.

    Returns:
        Column → value dict ready for IndustryMultiple(**clean)

    Raises:
        InvalidInputError: Missing industry, bad number, negative value, low > high
    """
    clean: Dict[str, Any] = {name: _text(values.get(name)) for name in PATH_FIELDS}
    if not clean["icb_industry"]:
        raise InvalidInputError("icb_industry is required")

    for low_name, high_name in RANGE_FIELDS:
        low = _number(values, low_name, required=True)
        high = _number(values, high_name, required=True)
        if low > high:
            raise InvalidInputError(f"{low_name} ({low}) must not exceed {high_name} ({high})")
        clean[low_name] = low
        clean[high_name] = high

    margin_low = _number(values, MARGIN_FIELDS[0], required=False)
    margin_high = _number(values, MARGIN_FIELDS[1], required=False)
    if (margin_low is None) != (margin_high is None):
        raise InvalidInputError("ebitda_margin_low and ebitda_margin_high must be given together")
    if margin_low is not None:
        if margin_low > margin_high:
            raise InvalidInputError(f"ebitda_margin_low ({margin_low}) must not exceed ebitda_margin_high ({margin_high})")
        if margin_high > 1:
            raise InvalidInputError("EBITDA margins are fractions between 0 and 1")
    clean["ebitda_margin_low"] = margin_low
    clean["ebitda_margin_high"] = margin_high

    clean["effective_date"] = _date(values.get("effective_date"))
    clean["source"] = _text(values.get("source"))
    return clean


def parse_multiples_csv(text: str) -> List[Dict[str, Any]]:
    """
    Parse and validate every CSV row before anything is written.

    Raises:
        InvalidInputError: Missing columns or an invalid row (with its line number)
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    headers = [h.strip() for h in (reader.fieldnames or [])]
    missing = [c for c in REQUIRED_CSV_COLUMNS if c not in headers]
    if missing:
        raise InvalidInputError(f"CSV is missing required columns: {', '.join(missing)}")

    rows = []
    for line_number, raw in enumerate(reader, start=2):
        row = {(k or "").strip(): v for k, v in raw.items()}
        try:
            rows.append(validate_multiple_values(row))
        except InvalidInputError as exc:
            raise InvalidInputError(f"Line {line_number}: {exc}")
    return rows


# -----------------------------------------------------------------------------
# Single-row edits
# -----------------------------------------------------------------------------

def _recalculate_affected(db: Session, rows: Iterable[IndustryMultiple]) -> BatchResult:
    company_ids = [c.id for c in find_affected_companies(db, list(rows))]
    return recalculate_companies(
        db,
        company_ids,
        event_type=LedgerEventType.MULTIPLES_UPDATED,
        job_type="recalculate-affected",
    )


def create_industry_multiple(db: Session, values: Mapping[str, Any]) -> Tuple[IndustryMultiple, BatchResult]:
    clean = validate_multiple_values(values)
    row = IndustryMultiple(**clean)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Created industry multiple %s for %s", row.id, row.icb_sub_sector or row.icb_industry)

    return row, _recalculate_affected(db, [row])


def update_industry_multiple(
    db: Session,
    multiple_id: int,
    values: Mapping[str, Any],
) -> Tuple[IndustryMultiple, BatchResult]:
    """
    Replace a row's values. Companies matching either the old or the new
    classification path are recalculated.
    """
    row = db.get(IndustryMultiple, multiple_id)
    if row is None:
        raise NotFoundError("IndustryMultiple", multiple_id)

    clean = validate_multiple_values(values)
    old_path = IndustryMultiple(**{name: getattr(row, name) for name in PATH_FIELDS})
    for name, value in clean.items():
        setattr(row, name, value)
    db.commit()
    db.refresh(row)
    logger.info("Updated industry multiple %s", row.id)

    return row, _recalculate_affected(db, [old_path, row])


# -----------------------------------------------------------------------------
# Bulk replace
# -----------------------------------------------------------------------------

def replace_industry_multiples(db: Session, rows: List[Mapping[str, Any]]) -> ImportResult:
    """
    Replace the whole table with `rows`, then recalculate every company.
    """
    clean_rows = [validate_multiple_values(r) for r in rows]

    deleted = db.query(IndustryMultiple).delete(synchronize_session=False)
    db.add_all(IndustryMultiple(**r) for r in clean_rows)
    db.commit()
    logger.info("Replaced industry multiples: %d removed, %d imported", deleted, len(clean_rows))

    company_ids = [cid for (cid,) in db.query(Company.id).order_by(Company.id).all()]
    batch = recalculate_companies(
        db,
        company_ids,
        event_type=LedgerEventType.MULTIPLES_UPDATED,
        job_type="recalculate-all",
    )
    return ImportResult(imported=len(clean_rows), recalculation=batch)


def import_multiples_csv(db: Session, text: str) -> ImportResult:
    return replace_industry_multiples(db, parse_multiples_csv(text))


def list_industry_multiples(db: Session) -> List[IndustryMultiple]:
    return (
        db.query(IndustryMultiple)
        .order_by(
            IndustryMultiple.icb_industry,
            IndustryMultiple.icb_super_sector,
            IndustryMultiple.icb_sector,
            IndustryMultiple.icb_sub_sector,
            IndustryMultiple.effective_date.desc(),
        )
        .all()
    )
