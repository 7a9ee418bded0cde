"""Database reads feeding the standings table."""
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select

from shared.models.domain import MatchResult, TeamRef, TeamStanding
from shared.models.enums import MatchStatus
from shared.models.orm import MatchORM, TeamORM, TournamentORM
from shared.utils.database import DatabaseManager
from standings.table import compute_standings


async def load_standings(db: DatabaseManager, tournament_id: uuid.UUID) -> Optional[list[TeamStanding]]:
    """Standings for a tournament, or None when the tournament does not exist."""
    async with db.read_session() as session:
        exists = await session.scalar(
            select(TournamentORM.id).where(TournamentORM.id == tournament_id)
        )
        if exists is None:
            return None

        team_rows = (
            await session.execute(
                select(TeamORM.id, TeamORM.name).where(TeamORM.tournament_id == tournament_id)
            )
        ).all()
        match_rows = (
            await session.execute(
                select(
                    MatchORM.id,
                    MatchORM.tournament_id,
                    MatchORM.team_a_id,
                    MatchORM.team_b_id,
                    MatchORM.status,
                    MatchORM.score_a,
                    MatchORM.score_b,
                ).where(
                    MatchORM.tournament_id == tournament_id,
                    MatchORM.status == MatchStatus.FINISHED.value,
                )
            )
        ).mappings().all()

    teams = [TeamRef(id=row.id, name=row.name) for row in team_rows]
    matches = [MatchResult.model_validate(dict(row)) for row in match_rows]
    return compute_standings(tournament_id, teams, matches)
