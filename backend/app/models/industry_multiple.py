"""
industry_multiple.py — ORM Model for Industry Valuation Multiples

Purpose:
- Store EBITDA and revenue multiple ranges per classification node.
- A row may be keyed at any level of the classification path; the most
  specific populated level is the one that matches during resolution.

Lifecycle:
- Seeded from CSV, edited by admins, or bulk-replaced by import.
- Every mutation is followed by recalculation of the affected companies.
"""

from sqlalchemy import Column, Date, DateTime, Float, Index, Integer, String

from app.core.database import Base, utcnow


class IndustryMultiple(Base):
    __tablename__ = "industry_multiple"

    id = Column(Integer, primary_key=True, index=True)

    # Classification path
    icb_industry = Column(String, nullable=False)
    icb_super_sector = Column(String, nullable=True)
    icb_sector = Column(String, nullable=True)
    icb_sub_sector = Column(String, nullable=True)

    # Ranges (invariant: low <= high)
    ebitda_multiple_low = Column(Float, nullable=False)
    ebitda_multiple_high = Column(Float, nullable=False)
    revenue_multiple_low = Column(Float, nullable=False)
    revenue_multiple_high = Column(Float, nullable=False)

    # Optional explicit EBITDA margin range (fractions, e.g. 0.12)
    ebitda_margin_low = Column(Float, nullable=True)
    ebitda_margin_high = Column(Float, nullable=True)

    effective_date = Column(Date, nullable=False)
    source = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_multiple_sub_sector", "icb_sub_sector"),
        Index("idx_multiple_sector", "icb_sector"),
        Index("idx_multiple_super_sector", "icb_super_sector"),
        Index("idx_multiple_industry", "icb_industry"),
    )

    def __repr__(self):
        return (
            f"<IndustryMultiple {self.icb_industry}/{self.icb_sub_sector} | "
            f"{self.ebitda_multiple_low}-{self.ebitda_multiple_high}x>"
        )
