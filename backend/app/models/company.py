"""
company.py — ORM Models for Companies and their Structural Profile

Purpose:
- Represent a private company whose sale value is being estimated.
- Provide the classification path (industry → super-sector → sector →
  sub-sector) used to resolve industry multiples.
- Hold the one-per-company CoreFactors profile and EBITDA adjustments.

Important Design Rule:
- Company rows are owned by the surrounding application (onboarding); the
  valuation core only reads them.
- Absence of CoreFactors is valid and yields the neutral default Core Score.
"""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import relationship

from app.core.database import Base, utcnow


class Company(Base):
    __tablename__ = "company"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    # Display Metadata
    name = Column(String, nullable=False)

    # Classification path (ICB). Only industry is required.
    icb_industry = Column(String, nullable=False)        # e.g., "Industrials"
    icb_super_sector = Column(String, nullable=True)     # e.g., "Industrial Goods and Services"
    icb_sector = Column(String, nullable=True)           # e.g., "Construction and Materials"
    icb_sub_sector = Column(String, nullable=True)       # e.g., "Building, Roofing/Wallboard and Plumbing"

    # Reported financials (annual, whole currency units)
    annual_revenue = Column(Float, nullable=False, default=0.0)
    annual_ebitda = Column(Float, nullable=True)
    owner_compensation = Column(Float, nullable=False, default=0.0)

    # Company-specific BRI category weights, e.g. {"FINANCIAL": 0.3, ...}
    bri_weights = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    core_factors = relationship("CoreFactors", back_populates="company", uselist=False)
    ebitda_adjustments = relationship("EbitdaAdjustment", back_populates="company")

    # Indexes for affected-company lookups after multiple edits
    __table_args__ = (
        Index("idx_company_icb_industry", "icb_industry"),
        Index("idx_company_icb_sub_sector", "icb_sub_sector"),
    )

    def __repr__(self):
        return f"<Company {self.id} | {self.name} | {self.icb_industry}/{self.icb_sub_sector}>"


class CoreFactors(Base):
    __tablename__ = "core_factors"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=False, unique=True)

    # e.g., "FROM_1M_TO_3M"; drives the market-salary benchmark, not the Core Score
    revenue_size_category = Column(String, nullable=True)
    revenue_model = Column(String, nullable=True)        # PROJECT_BASED .. SUBSCRIPTION_SAAS
    gross_margin_proxy = Column(String, nullable=True)   # LOW .. EXCELLENT
    labor_intensity = Column(String, nullable=True)      # VERY_HIGH .. LOW
    asset_intensity = Column(String, nullable=True)      # ASSET_HEAVY .. ASSET_LIGHT
    owner_involvement = Column(String, nullable=True)    # CRITICAL .. MINIMAL

    company = relationship("Company", back_populates="core_factors")

    def __repr__(self):
        return f"<CoreFactors {self.company_id}>"


class EbitdaAdjustment(Base):
    __tablename__ = "ebitda_adjustment"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=False, index=True)

    # "ADD_BACK" | "DEDUCTION"
    adjustment_type = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(String, nullable=True)

    company = relationship("Company", back_populates="ebitda_adjustments")

    def __repr__(self):
        return f"<EbitdaAdjustment {self.company_id} | {self.adjustment_type} {self.amount}>"
