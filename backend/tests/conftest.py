"""
Shared fixtures: in-memory SQLite database, sessions, factories and an API client.
"""

import datetime
from typing import Iterator, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (registers every table)
from app.core.database import Base, get_db
from app.models.assessment import AssessmentOption, AssessmentQuestion, AssessmentResponse
from app.models.company import Company, CoreFactors
from app.models.industry_multiple import IndustryMultiple
from app.models.task import Task


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory) -> Iterator[TestClient]:
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------

@pytest.fixture
def make_company(db):
    def _make(
        name: str = "Acme Widgets",
        icb_industry: str = "Industrials",
        icb_super_sector: Optional[str] = "Industrial Goods and Services",
        icb_sector: Optional[str] = "General Industrials",
        icb_sub_sector: Optional[str] = "Widgets",
        annual_revenue: float = 2_000_000,
        annual_ebitda: Optional[float] = None,
        owner_compensation: float = 0.0,
        core_factors: Optional[dict] = None,
        **extra,
    ) -> Company:
        company = Company(
            name=name,
            icb_industry=icb_industry,
            icb_super_sector=icb_super_sector,
            icb_sector=icb_sector,
            icb_sub_sector=icb_sub_sector,
            annual_revenue=annual_revenue,
            annual_ebitda=annual_ebitda,
            owner_compensation=owner_compensation,
            **extra,
        )
        if core_factors is not None:
            company.core_factors = CoreFactors(**core_factors)
        db.add(company)
        db.commit()
        db.refresh(company)
        return company

    return _make


@pytest.fixture
def make_multiple(db):
    def _make(
        icb_industry: str = "Industrials",
        icb_super_sector: Optional[str] = None,
        icb_sector: Optional[str] = None,
        icb_sub_sector: Optional[str] = None,
        ebitda: Sequence[float] = (3.0, 5.0),
        revenue: Sequence[float] = (1.0, 1.5),
        margin: Optional[Sequence[float]] = None,
        effective_date: datetime.date = datetime.date(2025, 1, 1),
        source: str = "test survey",
    ) -> IndustryMultiple:
        row = IndustryMultiple(
            icb_industry=icb_industry,
            icb_super_sector=icb_super_sector,
            icb_sector=icb_sector,
            icb_sub_sector=icb_sub_sector,
            ebitda_multiple_low=ebitda[0],
            ebitda_multiple_high=ebitda[1],
            revenue_multiple_low=revenue[0],
            revenue_multiple_high=revenue[1],
            ebitda_margin_low=margin[0] if margin else None,
            ebitda_margin_high=margin[1] if margin else None,
            effective_date=effective_date,
            source=source,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make


@pytest.fixture
def make_question(db):
    def _make(
        category: str = "FINANCIAL",
        points: float = 10.0,
        scores: Sequence[float] = (0.0, 0.5, 1.0),
        prompt: str = "How clean are the books?",
    ) -> AssessmentQuestion:
        question = AssessmentQuestion(bri_category=category, prompt=prompt, max_impact_points=points)
        question.options = [
            AssessmentOption(label=f"Option {score}", score_value=score) for score in scores
        ]
        db.add(question)
        db.commit()
        db.refresh(question)
        return question

    return _make


@pytest.fixture
def answer(db):
    def _answer(company: Company, question: AssessmentQuestion, score: Optional[float]) -> AssessmentResponse:
        option = None
        if score is not None:
            option = next(o for o in question.options if o.score_value == score)
        response = AssessmentResponse(company_id=company.id, question_id=question.id, selected_option=option)
        db.add(response)
        db.commit()
        db.refresh(response)
        return response

    return _answer


@pytest.fixture
def make_task(db):
    def _make(
        company: Company,
        title: str = "Document operating procedures",
        category: str = "OPERATIONAL",
        raw_impact: float = 100.0,
        priority_rank: int = 10,
        in_action_plan: bool = False,
        status: str = "PENDING",
        **extra,
    ) -> Task:
        task = Task(
            company_id=company.id,
            title=title,
            category=category,
            raw_impact=raw_impact,
            priority_rank=priority_rank,
            in_action_plan=in_action_plan,
            status=status,
            **extra,
        )
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    return _make


@pytest.fixture
def make_tasks(make_task):
    def _make(company: Company, ranks: Sequence[int], impacts: Sequence[float], **extra) -> List[Task]:
        return [
            make_task(company, title=f"Task {i}", priority_rank=rank, raw_impact=impact, **extra)
            for i, (rank, impact) in enumerate(zip(ranks, impacts))
        ]

    return _make
