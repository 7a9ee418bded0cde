"""
Tournament points table built from finished-match scores.

Win = 2 points, draw = 1, loss = 0. Net rate is the average points scored
per match minus the average conceded. Order: points, net rate, score
difference, then team name.
"""
from __future__ import annotations

import uuid
from typing import Iterable

from shared.models.domain import MatchResult, TeamRef, TeamStanding
from shared.models.enums import MatchStatus

WIN_POINTS = 2
DRAW_POINTS = 1


def compute_standings(
    tournament_id: uuid.UUID,
    teams: Iterable[TeamRef],
    matches: Iterable[MatchResult],
) -> list[TeamStanding]:
    finished = [
        m for m in matches
        if m.tournament_id == tournament_id and m.status == MatchStatus.FINISHED
    ]
    table = [_standing_for(team, finished) for team in teams]
    table.sort(key=lambda s: (-s.points, -s.nrr, -s.score_difference, s.team_name.lower()))
    return table


def _standing_for(team: TeamRef, finished: list[MatchResult]) -> TeamStanding:
    standing = TeamStanding(team_id=team.id, team_name=team.name)
    for match in finished:
        if match.team_a_id == team.id:
            scored, conceded = match.score_a or 0, match.score_b or 0
        elif match.team_b_id == team.id:
            scored, conceded = match.score_b or 0, match.score_a or 0
        else:
            continue

        standing.played += 1
        standing.points_scored += scored
        standing.points_conceded += conceded
        if scored > conceded:
            standing.won += 1
        elif scored < conceded:
            standing.lost += 1
        else:
            standing.draw += 1

    standing.points = standing.won * WIN_POINTS + standing.draw * DRAW_POINTS
    standing.score_difference = standing.points_scored - standing.points_conceded
    if standing.played:
        standing.nrr = round(
            standing.points_scored / standing.played - standing.points_conceded / standing.played,
            3,
        )
    return standing
