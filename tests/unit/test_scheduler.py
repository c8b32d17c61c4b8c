"""
Unit tests for fixture scheduling.
Tests: round_robin_pairings, generate_round_robin, schedule_sort_key,
       reorder_and_renumber
"""
from types import SimpleNamespace

from league.scheduler import (
    LEAGUE_STAGE,
    generate_round_robin,
    reorder_and_renumber,
    round_robin_pairings,
    schedule_sort_key,
)


def make_match(number, date=None, time=None, name=None):
    return SimpleNamespace(match_number=number, date=date, time=time, name=name or f"m{number}")


class TestRoundRobin:
    """Tests for round-robin generation."""

    def test_four_teams_pairing_order(self):
        """Four teams should pair in team order, six fixtures."""
        fixtures = generate_round_robin(['T1', 'T2', 'T3', 'T4'])

        assert [(f.team_a_id, f.team_b_id) for f in fixtures] == [
            ('T1', 'T2'), ('T1', 'T3'), ('T1', 'T4'),
            ('T2', 'T3'), ('T2', 'T4'), ('T3', 'T4'),
        ]
        assert [f.match_number for f in fixtures] == [1, 2, 3, 4, 5, 6]

    def test_every_pair_once(self):
        """N teams should give N(N-1)/2 fixtures with no repeated pair."""
        teams = [f"T{i}" for i in range(7)]
        fixtures = generate_round_robin(teams)

        assert len(fixtures) == 7 * 6 // 2
        pairs = {frozenset((f.team_a_id, f.team_b_id)) for f in fixtures}
        assert len(pairs) == len(fixtures)
        assert all(f.team_a_id != f.team_b_id for f in fixtures)

    def test_round_name(self):
        """Generated fixtures belong to the league stage."""
        fixtures = generate_round_robin(['A', 'B', 'C'])
        assert {f.round for f in fixtures} == {LEAGUE_STAGE}

    def test_too_few_teams(self):
        """Zero or one team produces no fixtures."""
        assert generate_round_robin([]) == []
        assert round_robin_pairings(['A']) == []


class TestReorder:
    """Tests for chronological ordering and renumbering."""

    def test_dated_before_undated(self):
        """Any dated match sorts ahead of undated ones."""
        matches = [
            make_match(1),
            make_match(2, date='2024-05-01'),
            make_match(3),
        ]
        ordered = reorder_and_renumber(matches)

        assert [m.name for m in ordered] == ['m2', 'm1', 'm3']
        assert [m.match_number for m in ordered] == [1, 2, 3]

    def test_date_then_time(self):
        """Same date sorts by time, timed before untimed."""
        matches = [
            make_match(1, date='2024-05-02', time='18:00'),
            make_match(2, date='2024-05-01'),
            make_match(3, date='2024-05-01', time='20:00'),
            make_match(4, date='2024-05-01', time='09:30'),
        ]
        ordered = reorder_and_renumber(matches)

        assert [m.name for m in ordered] == ['m4', 'm3', 'm2', 'm1']

    def test_ties_keep_current_order(self):
        """Matches in the same slot keep their relative order."""
        matches = [make_match(2), make_match(1), make_match(3)]
        ordered = reorder_and_renumber(matches)
        assert [m.name for m in ordered] == ['m1', 'm2', 'm3']

    def test_idempotent(self):
        """Reordering twice gives the same order and numbers."""
        matches = [
            make_match(1),
            make_match(2, date='2024-06-01', time='10:00'),
            make_match(3, date='2024-05-01'),
        ]
        first = reorder_and_renumber(matches)
        snapshot = [(m.name, m.match_number) for m in first]
        second = reorder_and_renumber(first)

        assert [(m.name, m.match_number) for m in second] == snapshot

    def test_last_undated_gets_earliest_date(self):
        """Giving the last undated match the earliest date makes it match 1."""
        matches = [make_match(i) for i in range(1, 5)]
        matches[3].date = '2024-01-01'

        ordered = reorder_and_renumber(matches)
        assert [m.name for m in ordered] == ['m4', 'm1', 'm2', 'm3']
        assert [m.match_number for m in ordered] == [1, 2, 3, 4]

    def test_sort_key_treats_empty_as_missing(self):
        """Empty strings count as no date or time."""
        assert schedule_sort_key(make_match(1, date='', time='')) == (True, '', True, '', 1)
