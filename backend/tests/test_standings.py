"""Points table computation."""
from __future__ import annotations

import uuid
from typing import Optional

import pytest

from shared.models.domain import MatchResult, TeamRef
from shared.models.enums import MatchStatus
from standings.table import compute_standings

TOURNAMENT = uuid.uuid4()


def _team(name: str) -> TeamRef:
    return TeamRef(id=uuid.uuid4(), name=name)


def _match(
    a: TeamRef,
    b: TeamRef,
    score_a: Optional[int],
    score_b: Optional[int],
    status: MatchStatus = MatchStatus.FINISHED,
    tournament_id: uuid.UUID = TOURNAMENT,
) -> MatchResult:
    return MatchResult(
        id=uuid.uuid4(),
        tournament_id=tournament_id,
        team_a_id=a.id,
        team_b_id=b.id,
        status=status,
        score_a=score_a,
        score_b=score_b,
    )


def test_win_draw_loss_points() -> None:
    tigers, lions, hawks = _team("Tigers"), _team("Lions"), _team("Hawks")
    table = compute_standings(
        TOURNAMENT,
        [tigers, lions, hawks],
        [
            _match(tigers, lions, 14, 10),
            _match(lions, hawks, 9, 9),
        ],
    )
    by_name = {s.team_name: s for s in table}

    assert by_name["Tigers"].won == 1 and by_name["Tigers"].points == 2
    assert by_name["Lions"].lost == 1 and by_name["Lions"].draw == 1
    assert by_name["Lions"].points == 1
    assert by_name["Lions"].played == 2
    assert by_name["Hawks"].draw == 1 and by_name["Hawks"].points == 1
    assert [s.team_name for s in table][0] == "Tigers"


def test_net_rate_and_score_difference() -> None:
    tigers, lions = _team("Tigers"), _team("Lions")
    table = compute_standings(
        TOURNAMENT,
        [tigers, lions],
        [_match(tigers, lions, 14, 10), _match(lions, tigers, 12, 11)],
    )
    tigers_row = next(s for s in table if s.team_id == tigers.id)
    assert tigers_row.points_scored == 25
    assert tigers_row.points_conceded == 22
    assert tigers_row.score_difference == 3
    assert tigers_row.nrr == pytest.approx(1.5)


def test_only_finished_matches_of_the_tournament_count() -> None:
    tigers, lions = _team("Tigers"), _team("Lions")
    table = compute_standings(
        TOURNAMENT,
        [tigers, lions],
        [
            _match(tigers, lions, 20, 0, status=MatchStatus.LIVE),
            _match(tigers, lions, 20, 0, status=MatchStatus.SCHEDULED),
            _match(tigers, lions, 20, 0, tournament_id=uuid.uuid4()),
        ],
    )
    assert all(s.played == 0 and s.points == 0 for s in table)
    assert all(s.nrr == 0.0 for s in table)


def test_missing_scores_count_as_zero_draw() -> None:
    tigers, lions = _team("Tigers"), _team("Lions")
    table = compute_standings(TOURNAMENT, [tigers, lions], [_match(tigers, lions, None, None)])
    assert all(s.draw == 1 and s.points == 1 for s in table)


def test_ordering_tiebreaks() -> None:
    alpha, bravo, charlie, delta = _team("alpha"), _team("Bravo"), _team("Charlie"), _team("Delta")
    table = compute_standings(
        TOURNAMENT,
        [delta, charlie, bravo, alpha],
        [
            # alpha and bravo both win once; bravo by a wider margin
            _match(alpha, charlie, 10, 9),
            _match(bravo, delta, 15, 5),
        ],
    )
    assert [s.team_name for s in table] == ["Bravo", "alpha", "Charlie", "Delta"]


def test_name_breaks_full_tie_case_insensitively() -> None:
    teams = [_team("zebras"), _team("Ants"), _team("bees")]
    table = compute_standings(TOURNAMENT, teams, [])
    assert [s.team_name for s in table] == ["Ants", "bees", "zebras"]
