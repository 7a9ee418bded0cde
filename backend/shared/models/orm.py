"""
SQLAlchemy 2.0 ORM models for Kho-Kho Live.
Maps to the tournaments / teams / matches tables of the platform database.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class TournamentORM(Base):
    __tablename__ = "tournaments"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    teams: Mapped[list["TeamORM"]] = relationship(back_populates="tournament")
    matches: Mapped[list["MatchORM"]] = relationship(back_populates="tournament")


class TeamORM(Base):
    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tournament_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tournaments.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    logo_url: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    tournament: Mapped["TournamentORM"] = relationship(back_populates="teams")


class MatchORM(Base):
    __tablename__ = "matches"
    __table_args__ = (
        CheckConstraint(
            "timer_status IN ('running', 'paused', 'break', 'stopped')",
            name="ck_matches_timer_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tournament_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tournaments.id"), nullable=False
    )
    match_number: Mapped[Optional[str]] = mapped_column(String(20))
    team_a_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("teams.id"), nullable=False)
    team_b_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("teams.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    venue: Mapped[Optional[str]] = mapped_column(String(200))
    score_a: Mapped[Optional[int]] = mapped_column(Integer)
    score_b: Mapped[Optional[int]] = mapped_column(Integer)
    innings: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=2)
    current_inning: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    current_turn: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    # Seconds per turn; NULL falls back to KK_TURN_DURATION_S, 0 disables the limit.
    turn_duration: Mapped[Optional[int]] = mapped_column(Integer)
    timer_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timer_status: Mapped[str] = mapped_column(String(10), nullable=False, default="stopped")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    tournament: Mapped["TournamentORM"] = relationship(back_populates="matches")
