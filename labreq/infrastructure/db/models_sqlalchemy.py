from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Index, MetaData, String, Text
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import expression

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    # avoid constraint_name token to allow unnamed CheckConstraint
    "ck": "ck_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=naming_convention)


class Base(DeclarativeBase):
    metadata = metadata


def utc_now() -> datetime:
    return datetime.now(UTC)


class BloodTestDocument(Base):
    __tablename__ = "blood_tests"

    id = Column(String(36), primary_key=True)
    user_id = Column(String, nullable=False)
    form_data_json = Column(Text, nullable=False, server_default=expression.literal("{}"))
    status = Column(
        String,
        CheckConstraint("status in ('draft','completed','archived')"),
        nullable=False,
        server_default=expression.literal("draft"),
    )
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_blood_tests_user_id_created_at", "user_id", "created_at"),
        Index("ix_blood_tests_status", "status"),
    )
