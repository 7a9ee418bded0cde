"""
Tournament REST endpoints.

GET /v1/tournaments/{id}/standings: points table from finished matches.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException

from shared.models.domain import TeamStanding
from shared.utils.database import DatabaseManager
from standings.repository import load_standings

from api.dependencies import get_db

router = APIRouter(prefix="/v1/tournaments", tags=["tournaments"])


@router.get("/{tournament_id}/standings", response_model=list[TeamStanding])
async def get_standings(
    tournament_id: uuid.UUID,
    db: DatabaseManager = Depends(get_db),
) -> list[TeamStanding]:
    standings = await load_standings(db, tournament_id)
    if standings is None:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return standings
