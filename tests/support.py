from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base
from app.services.snapshot_provider import Requisition, RequisitionType


def make_session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def make_requisition(
    number: int,
    *,
    req_id: str | None = None,
    created_at: str | None = None,
    created_by: str | None = 'admin',
    fitter: str | None = None,
    req_type: RequisitionType = RequisitionType.FACTORY,
) -> Requisition:
    return Requisition(
        id=req_id or f'req-{number}',
        requisition_number=f'R-{number}',
        type=req_type,
        created_at=created_at or f'2024-03-{(number % 28) + 1:02d}T10:00:00Z',
        created_by=created_by,
        fitter=fitter,
    )
