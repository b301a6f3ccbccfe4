"""
valuation_snapshot.py — ORM Models for Valuation Snapshots & the Value Ledger

Purpose:
- Store every valuation computation (inputs + outputs) as an immutable,
  timestamped record.
- Allows the application to:
    * Show the current valuation (most recent snapshot by company)
    * Chart valuation and BRI trends over time
    * Audit why a value moved (reason, creator, ledger entry)

Rules:
- Snapshots are append-only. Nothing updates or deletes a row once written;
  a newer snapshot supersedes it.
- Every stored figure is reproducible from the stored inputs and `alpha_constant`.

ValueLedgerEntry:
- One entry per snapshot recording the delta versus the immediately
  preceding snapshot, with a human-readable narrative.
"""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from app.core.database import Base, utcnow


class ValuationSnapshot(Base):
    __tablename__ = "valuation_snapshot"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    # Foreign key → which company this valuation refers to
    company_id = Column(Integer, ForeignKey("company.id"), nullable=False)

    # Inputs
    adjusted_ebitda = Column(Float, nullable=False)
    industry_multiple_low = Column(Float, nullable=False)
    industry_multiple_high = Column(Float, nullable=False)
    multiple_match_level = Column(String, nullable=True)  # subsector | sector | supersector | industry | default
    core_score = Column(Float, nullable=False)

    # BRI (overall + six categories, 0-1)
    bri_score = Column(Float, nullable=False)
    bri_financial = Column(Float, nullable=False)
    bri_transferability = Column(Float, nullable=False)
    bri_operational = Column(Float, nullable=False)
    bri_market = Column(Float, nullable=False)
    bri_legal_tax = Column(Float, nullable=False)
    bri_personal = Column(Float, nullable=False)

    # Outputs
    base_multiple = Column(Float, nullable=False)
    discount_fraction = Column(Float, nullable=False)
    final_multiple = Column(Float, nullable=False)
    current_value = Column(Float, nullable=False)
    potential_value = Column(Float, nullable=False)
    value_gap = Column(Float, nullable=False)

    # The ALPHA in effect when this snapshot was computed
    alpha_constant = Column(Float, nullable=False)

    # Audit
    snapshot_reason = Column(String, nullable=False)
    created_by_user_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    company = relationship("Company", backref="valuation_snapshots")

    # Most-recent-by-company lookups
    __table_args__ = (
        Index("idx_snapshot_company_created", "company_id", "created_at"),
    )

    def __repr__(self):
        return f"<ValuationSnapshot {self.company_id} | {self.current_value} | {self.snapshot_reason}>"


class ValueLedgerEntry(Base):
    __tablename__ = "value_ledger_entry"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=False, index=True)
    snapshot_id = Column(Integer, ForeignKey("valuation_snapshot.id"), nullable=False)

    event_type = Column(String, nullable=False)  # see LedgerEventType
    category = Column(String, nullable=True)     # BRI category of the triggering task, if any
    task_id = Column(Integer, ForeignKey("task.id"), nullable=True)
    title = Column(String, nullable=True)

    delta_value_recovered = Column(Float, nullable=False, default=0.0)
    delta_value_at_risk = Column(Float, nullable=False, default=0.0)
    bri_score_before = Column(Float, nullable=True)
    bri_score_after = Column(Float, nullable=False)

    narrative = Column(String, nullable=False)
    narrative_source = Column(String, nullable=False)  # "ai" | "template"

    created_at = Column(DateTime, default=utcnow, nullable=False)

    snapshot = relationship("ValuationSnapshot")

    def __repr__(self):
        return f"<ValueLedgerEntry {self.company_id} | {self.event_type} | +{self.delta_value_recovered}>"
