"""
Unit tests for TournamentEngine and the Tournament aggregate.
Tests: scheduling, match editing and ordering, live scoring, match results,
       admin checks, joining, standings, event publishing, stale writes
"""
import pytest
from types import SimpleNamespace

from shared.events import EventType
from shared.state_machine import TransitionError
from league.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from league.identity import IdentityDirectory
from league.models import db, Tournament
from league.roster import RosterRegistry
from league.tournament_engine import TournamentEngine


@pytest.fixture
def league(app, mock_publisher):
    """Engine plus an admin, an outsider and a tournament with four teams."""
    with app.app_context():
        identity = IdentityDirectory()
        roster = RosterRegistry()
        engine = TournamentEngine(roster, publisher=mock_publisher)

        admin, _ = identity.register('admin@example.com', 'Admin', '1990-01-01')
        outsider, _ = identity.register('outsider@example.com', 'Outsider', '1991-01-01')

        tournament = engine.create_tournament(admin, 'Spring Cup')
        teams = [roster.create_team(admin, name) for name in ('T1', 'T2', 'T3', 'T4')]
        for team in teams:
            engine.add_team(tournament.id, admin, team.id)

        yield SimpleNamespace(
            engine=engine,
            roster=roster,
            identity=identity,
            admin=admin,
            outsider=outsider,
            tournament_id=tournament.id,
            team_ids=[t.id for t in teams],
            publisher=mock_publisher,
        )


def published_types(publisher):
    return [c[0][0].type for c in publisher.publish_tournament_event.call_args_list]


class TestCreateTournament:
    """Tests for create_tournament."""

    def test_creator_is_admin(self, league):
        tournament = league.engine.get_tournament(league.tournament_id)
        assert tournament.admin_id == league.admin.id
        assert len(tournament.invite_code) == 10
        assert tournament.scheduling_done is False

    def test_name_required(self, league):
        with pytest.raises(ValidationError):
            league.engine.create_tournament(league.admin, '   ')

    def test_get_missing(self, league):
        with pytest.raises(NotFoundError):
            league.engine.get_tournament('t_missing')


class TestSchedule:
    """Tests for round-robin scheduling."""

    def test_four_teams_six_matches(self, league):
        """Four teams produce the six pairings in team order."""
        t1, t2, t3, t4 = league.team_ids
        tournament = league.engine.schedule(league.tournament_id, league.admin)

        assert [(m.team_a_id, m.team_b_id) for m in tournament.matches] == [
            (t1, t2), (t1, t3), (t1, t4), (t2, t3), (t2, t4), (t3, t4)
        ]
        assert [m.match_number for m in tournament.matches] == [1, 2, 3, 4, 5, 6]
        assert all(m.status == 'Scheduled' and m.score_a == 0 and m.score_b == 0
                   for m in tournament.matches)
        assert tournament.scheduling_done is True

    def test_reschedule_replaces_matches(self, league):
        """Scheduling again discards the previous matches."""
        first = league.engine.schedule(league.tournament_id, league.admin)
        old_ids = {m.id for m in first.matches}

        second = league.engine.schedule(league.tournament_id, league.admin)
        assert len(second.matches) == 6
        assert old_ids.isdisjoint({m.id for m in second.matches})

    def test_needs_two_teams(self, league):
        """Fewer than two teams cannot be scheduled."""
        tournament = league.engine.create_tournament(league.admin, 'Tiny Cup')
        league.engine.add_team(tournament.id, league.admin, league.team_ids[0])

        with pytest.raises(ValidationError):
            league.engine.schedule(tournament.id, league.admin)

    def test_non_admin_rejected(self, league):
        """Only the tournament admin may schedule; nothing changes."""
        with pytest.raises(AuthorizationError):
            league.engine.schedule(league.tournament_id, league.outsider)

        db.session.rollback()
        tournament = league.engine.get_tournament(league.tournament_id)
        assert tournament.matches == []
        assert tournament.scheduling_done is False

    def test_publishes_event(self, league):
        league.engine.schedule(league.tournament_id, league.admin)
        event = league.publisher.publish_tournament_event.call_args[0][0]
        assert event.type == EventType.SCHEDULE_GENERATED
        assert event.data['matches_count'] == 6


OUTSIDER_ACTIONS = {
    'add_team': lambda lg, m, spare: lg.engine.add_team(lg.tournament_id, lg.outsider, spare),
    'add_match': lambda lg, m, spare: lg.engine.add_match(
        lg.tournament_id, lg.outsider, lg.team_ids[0], lg.team_ids[1], 'Final'),
    'update_match': lambda lg, m, spare: lg.engine.update_match(
        lg.tournament_id, m, lg.outsider, {'date': '2024-01-01'}),
    'remove_match': lambda lg, m, spare: lg.engine.remove_match(lg.tournament_id, m, lg.outsider),
    'start_match': lambda lg, m, spare: lg.engine.start_match(lg.tournament_id, m, lg.outsider),
    'end_match': lambda lg, m, spare: lg.engine.end_match(lg.tournament_id, m, lg.outsider),
    'record_card': lambda lg, m, spare: lg.engine.record_card(
        lg.tournament_id, m, lg.outsider, card_type='Yellow', team_id=lg.team_ids[0]),
    'set_player_of_the_match': lambda lg, m, spare: lg.engine.set_player_of_the_match(
        lg.tournament_id, m, lg.outsider, lg.outsider.id),
    'update_tournament': lambda lg, m, spare: lg.engine.update_tournament(
        lg.tournament_id, lg.outsider, {'name': 'Hijacked Cup'}),
}


class TestAdminOnly:
    """Every tournament mutation is refused for a non-admin."""

    @pytest.mark.parametrize('action', sorted(OUTSIDER_ACTIONS))
    def test_outsider_rejected_and_nothing_changes(self, league, action):
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        match_id = tournament.matches[0].id
        spare = league.roster.create_team(league.outsider, 'T5')
        before = tournament.to_dict()
        league.publisher.publish_tournament_event.reset_mock()

        with pytest.raises(AuthorizationError):
            OUTSIDER_ACTIONS[action](league, match_id, spare.id)
        db.session.rollback()

        after = league.engine.get_tournament(league.tournament_id).to_dict()
        assert after == before
        assert not league.publisher.publish_tournament_event.called


class TestMatchEditing:
    """Tests for add_match, update_match and remove_match."""

    def test_date_moves_last_match_first(self, league):
        """Giving the last undated match the earliest date makes it match 1."""
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        original = [m.id for m in tournament.matches]

        league.engine.update_match(league.tournament_id, original[-1], league.admin,
                                   {'date': '2024-01-01'})

        tournament = league.engine.get_tournament(league.tournament_id)
        assert [m.id for m in tournament.matches] == [original[-1]] + original[:-1]
        assert [m.match_number for m in tournament.matches] == [1, 2, 3, 4, 5, 6]

    def test_empty_date_clears_it(self, league):
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        match_id = tournament.matches[2].id

        league.engine.update_match(league.tournament_id, match_id, league.admin, {'date': '2024-03-01'})
        match = league.engine.update_match(league.tournament_id, match_id, league.admin, {'date': ''})

        assert match.date is None

    def test_update_rejects_team_outside_tournament(self, league):
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        match_id = tournament.matches[0].id

        with pytest.raises(ValidationError):
            league.engine.update_match(league.tournament_id, match_id, league.admin,
                                       {'team_a_id': 'tm_nowhere'})

    def test_finished_match_teams_locked(self, league):
        """Swapping a side on a finished match would orphan its winner."""
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        match_id = tournament.matches[0].id
        t1, t2, t3 = league.team_ids[:3]
        league.engine.record_goal(league.tournament_id, match_id, league.admin,
                                  benefiting_team_id=t1)
        league.engine.end_match(league.tournament_id, match_id, league.admin)

        with pytest.raises(TransitionError):
            league.engine.update_match(league.tournament_id, match_id, league.admin,
                                       {'team_a_id': t3})
        db.session.rollback()

        match = league.engine.get_tournament(league.tournament_id).get_match(match_id)
        assert (match.team_a_id, match.team_b_id) == (t1, t2)
        assert match.winner_id == t1
        assert (match.score_a, match.score_b) == (1, 0)

    def test_live_match_teams_locked(self, league):
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        match_id = tournament.matches[0].id
        league.engine.start_match(league.tournament_id, match_id, league.admin)

        with pytest.raises(TransitionError):
            league.engine.update_match(league.tournament_id, match_id, league.admin,
                                       {'team_b_id': league.team_ids[3]})

    def test_finished_match_can_be_redated(self, league):
        """Date and time stay editable after the final whistle."""
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        match_id = tournament.matches[0].id
        t1, t2 = league.team_ids[:2]
        league.engine.end_match(league.tournament_id, match_id, league.admin)

        match = league.engine.update_match(league.tournament_id, match_id, league.admin,
                                           {'date': '2024-05-01', 'time': '19:30', 'team_a_id': t1})

        assert (match.date, match.time) == ('2024-05-01', '19:30')
        assert (match.team_a_id, match.team_b_id) == (t1, t2)
        assert match.status == 'Finished'

    def test_add_match_sorted_into_place(self, league):
        """A dated match added to undated fixtures becomes match 1."""
        league.engine.schedule(league.tournament_id, league.admin)
        t1, t2 = league.team_ids[:2]

        match = league.engine.add_match(league.tournament_id, league.admin, t1, t2, 'Final',
                                        date='2024-02-01', time='18:00')

        tournament = league.engine.get_tournament(league.tournament_id)
        assert len(tournament.matches) == 7
        assert tournament.matches[0].id == match.id
        assert match.match_number == 1
        assert match.round == 'Final'

    def test_add_match_validation(self, league):
        """Same team twice, unknown team, or missing round is rejected."""
        t1, t2 = league.team_ids[:2]
        with pytest.raises(ValidationError):
            league.engine.add_match(league.tournament_id, league.admin, t1, t1, 'Final')
        with pytest.raises(ValidationError):
            league.engine.add_match(league.tournament_id, league.admin, t1, 'tm_nowhere', 'Final')
        with pytest.raises(ValidationError):
            league.engine.add_match(league.tournament_id, league.admin, t1, t2, '')

    def test_add_match_bad_date(self, league):
        t1, t2 = league.team_ids[:2]
        with pytest.raises(ValidationError):
            league.engine.add_match(league.tournament_id, league.admin, t1, t2, 'Final', date='01/02/2024')

    def test_remove_match_renumbers(self, league):
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        ids = [m.id for m in tournament.matches]

        league.engine.remove_match(league.tournament_id, ids[1], league.admin)

        tournament = league.engine.get_tournament(league.tournament_id)
        assert [m.id for m in tournament.matches] == [ids[0]] + ids[2:]
        assert [m.match_number for m in tournament.matches] == [1, 2, 3, 4, 5]

    def test_remove_missing_match(self, league):
        with pytest.raises(NotFoundError):
            league.engine.remove_match(league.tournament_id, 'm_missing', league.admin)


class TestLiveScoring:
    """Tests for start, goals, cards, player of the match and end."""

    @pytest.fixture
    def match_id(self, league):
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        return tournament.matches[0].id

    def score(self, league, match_id, team_id, times=1):
        for _ in range(times):
            league.engine.record_goal(league.tournament_id, match_id, league.admin,
                                      benefiting_team_id=team_id)

    def test_start_match(self, league, match_id):
        match = league.engine.start_match(league.tournament_id, match_id, league.admin)
        assert match.status == 'Live'
        assert published_types(league.publisher)[-1] == EventType.MATCH_STARTED

    def test_start_twice_is_noop(self, league, match_id):
        """Starting a live match changes nothing and publishes nothing."""
        league.engine.start_match(league.tournament_id, match_id, league.admin)
        calls = league.publisher.publish_tournament_event.call_count

        match = league.engine.start_match(league.tournament_id, match_id, league.admin)
        assert match.status == 'Live'
        assert league.publisher.publish_tournament_event.call_count == calls

    def test_start_finished_rejected(self, league, match_id):
        league.engine.end_match(league.tournament_id, match_id, league.admin)
        with pytest.raises(TransitionError):
            league.engine.start_match(league.tournament_id, match_id, league.admin)

    def test_goal_increments_benefiting_side(self, league, match_id):
        t1, t2 = league.team_ids[:2]
        self.score(league, match_id, t1, times=2)
        self.score(league, match_id, t2)

        match = league.engine.get_tournament(league.tournament_id).get_match(match_id)
        assert (match.score_a, match.score_b) == (2, 1)
        assert [g.team_id for g in match.goals] == [t1, t1, t2]

    def test_goal_for_team_not_in_match(self, league, match_id):
        """A goal credited to neither side is rejected and scores stay put."""
        t1 = league.team_ids[0]
        self.score(league, match_id, t1)

        with pytest.raises(ValidationError):
            self.score(league, match_id, league.team_ids[3])
        db.session.rollback()

        match = league.engine.get_tournament(league.tournament_id).get_match(match_id)
        assert (match.score_a, match.score_b) == (1, 0)
        assert len(match.goals) == 1

    def test_goal_requires_team(self, league, match_id):
        with pytest.raises(ValidationError):
            league.engine.record_goal(league.tournament_id, match_id, league.admin,
                                      benefiting_team_id=None)

    def test_goal_details_kept(self, league, match_id):
        """Scorer, assist, own-goal flag and minute are stored."""
        t2 = league.team_ids[1]
        match = league.engine.record_goal(
            league.tournament_id, match_id, league.admin,
            benefiting_team_id=t2,
            scorer_id=league.outsider.id,
            scorer_name='Olive',
            assist_name='Guest',
            is_own_goal=True,
            minute=37
        )
        goal = match.to_dict()['goals'][0]
        assert goal['scorer_id'] == league.outsider.id
        assert goal['assist_name'] == 'Guest'
        assert goal['is_own_goal'] is True
        assert goal['minute'] == 37
        assert match.score_b == 1

    def test_goal_unknown_scorer(self, league, match_id):
        with pytest.raises(NotFoundError):
            league.engine.record_goal(league.tournament_id, match_id, league.admin,
                                      benefiting_team_id=league.team_ids[0], scorer_id='u_ghost')

    def test_goal_after_finish_rejected(self, league, match_id):
        league.engine.end_match(league.tournament_id, match_id, league.admin)
        with pytest.raises(TransitionError):
            self.score(league, match_id, league.team_ids[0])

    def test_record_card(self, league, match_id):
        """Cards are appended without touching the score."""
        t1 = league.team_ids[0]
        match = league.engine.record_card(league.tournament_id, match_id, league.admin,
                                          card_type='Yellow', team_id=t1, player_name='Sam',
                                          minute=12)
        assert match.to_dict()['cards'][0]['type'] == 'Yellow'
        assert (match.score_a, match.score_b) == (0, 0)

    def test_card_validation(self, league, match_id):
        t1 = league.team_ids[0]
        with pytest.raises(ValidationError):
            league.engine.record_card(league.tournament_id, match_id, league.admin,
                                      card_type='Green', team_id=t1)
        with pytest.raises(ValidationError):
            league.engine.record_card(league.tournament_id, match_id, league.admin,
                                      card_type='Red', team_id=league.team_ids[3])

    def test_player_of_the_match(self, league, match_id):
        match = league.engine.set_player_of_the_match(league.tournament_id, match_id, league.admin,
                                                      league.outsider.id)
        assert match.player_of_the_match_id == league.outsider.id

    def test_player_of_the_match_unknown_user(self, league, match_id):
        with pytest.raises(NotFoundError):
            league.engine.set_player_of_the_match(league.tournament_id, match_id, league.admin, 'u_ghost')
        with pytest.raises(ValidationError):
            league.engine.set_player_of_the_match(league.tournament_id, match_id, league.admin, None)


class TestEndMatch:
    """Tests for winner resolution."""

    @pytest.fixture
    def match_id(self, league):
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        return tournament.matches[0].id

    def goals(self, league, match_id, a, b):
        t1, t2 = league.team_ids[:2]
        for team_id, count in ((t1, a), (t2, b)):
            for _ in range(count):
                league.engine.record_goal(league.tournament_id, match_id, league.admin,
                                          benefiting_team_id=team_id)

    def test_higher_score_wins(self, league, match_id):
        self.goals(league, match_id, 1, 3)
        match = league.engine.end_match(league.tournament_id, match_id, league.admin)

        assert match.status == 'Finished'
        assert match.winner_id == league.team_ids[1]

    def test_draw_has_no_winner(self, league, match_id):
        self.goals(league, match_id, 1, 1)
        match = league.engine.end_match(league.tournament_id, match_id, league.admin)

        assert match.status == 'Finished'
        assert match.winner_id is None

    def test_penalties_decide_draw(self, league, match_id):
        """2-2 with penalties 5-4 goes to team A and stores the shoot-out."""
        self.goals(league, match_id, 2, 2)
        match = league.engine.end_match(league.tournament_id, match_id, league.admin,
                                        {'penalty_score_a': 5, 'penalty_score_b': 4})

        assert match.status == 'Finished'
        assert match.winner_id == league.team_ids[0]
        assert (match.penalty_score_a, match.penalty_score_b) == (5, 4)

    def test_level_penalties_not_stored(self, league, match_id):
        self.goals(league, match_id, 0, 0)
        match = league.engine.end_match(league.tournament_id, match_id, league.admin,
                                        {'penalty_score_a': 3, 'penalty_score_b': 3})

        assert match.winner_id is None
        assert match.penalty_score_a is None

    def test_penalties_ignored_when_scores_differ(self, league, match_id):
        self.goals(league, match_id, 2, 1)
        match = league.engine.end_match(league.tournament_id, match_id, league.admin,
                                        {'penalty_score_a': 0, 'penalty_score_b': 5})
        assert match.winner_id == league.team_ids[0]
        assert match.penalty_score_b is None

    def test_bad_penalty_scores(self, league, match_id):
        with pytest.raises(ValidationError):
            league.engine.end_match(league.tournament_id, match_id, league.admin,
                                    {'penalty_score_a': -1, 'penalty_score_b': 2})

    def test_end_twice_rejected(self, league, match_id):
        league.engine.end_match(league.tournament_id, match_id, league.admin)
        with pytest.raises(TransitionError):
            league.engine.end_match(league.tournament_id, match_id, league.admin)

    def test_finished_event(self, league, match_id):
        self.goals(league, match_id, 1, 0)
        league.engine.end_match(league.tournament_id, match_id, league.admin)

        event = league.publisher.publish_tournament_event.call_args[0][0]
        assert event.type == EventType.MATCH_FINISHED
        assert event.data['winner'] == league.team_ids[0]


class TestJoinTournament:
    """Tests for join_tournament and add_team."""

    def test_join_with_lowercase_code(self, league):
        team = league.roster.create_team(league.outsider, 'Visitors')
        code = league.engine.get_tournament(league.tournament_id).invite_code

        tournament = league.engine.join_tournament(league.outsider, code.lower(), team.id)
        assert tournament.team_ids[-1] == team.id
        assert published_types(league.publisher)[-1] == EventType.TEAM_JOINED

    def test_join_requires_team_admin(self, league):
        """Only an admin of the team can enter it."""
        code = league.engine.get_tournament(league.tournament_id).invite_code
        team = league.roster.create_team(league.admin, 'Admins Only')

        with pytest.raises(AuthorizationError):
            league.engine.join_tournament(league.outsider, code, team.id)

    def test_join_unknown_code(self, league):
        team = league.roster.create_team(league.outsider, 'Visitors')
        with pytest.raises(NotFoundError):
            league.engine.join_tournament(league.outsider, 'NOPE', team.id)

    def test_join_twice_conflicts(self, league):
        code = league.engine.get_tournament(league.tournament_id).invite_code
        with pytest.raises(ConflictError):
            league.engine.join_tournament(league.admin, code, league.team_ids[0])

    def test_add_team_by_invite_code(self, league):
        team = league.roster.create_team(league.outsider, 'Visitors')
        tournament = league.engine.add_team(league.tournament_id, league.admin, team.invite_code.lower())
        assert team.id in tournament.team_ids

    def test_add_unknown_team(self, league):
        with pytest.raises(NotFoundError):
            league.engine.add_team(league.tournament_id, league.admin, 'missing')


class TestStandingsAndVersions:
    """Tests for standings and optimistic version checks."""

    def test_standings(self, league):
        tournament = league.engine.schedule(league.tournament_id, league.admin)
        first = tournament.matches[0]
        t1 = league.team_ids[0]
        league.engine.record_goal(league.tournament_id, first.id, league.admin, benefiting_team_id=t1)
        league.engine.end_match(league.tournament_id, first.id, league.admin)

        table = league.engine.get_standings(league.tournament_id)
        assert table[0]['team_id'] == t1
        assert table[0]['points'] == 3
        assert len(table) == 4

    def test_stale_write_conflicts(self, league):
        """A concurrent change to the tournament row turns the save into a conflict."""
        tournament = league.engine.get_tournament(league.tournament_id)
        version = tournament.version

        db.session.execute(
            Tournament.__table__.update()
            .where(Tournament.__table__.c.id == league.tournament_id)
            .values(version=version + 1)
        )

        with pytest.raises(ConflictError):
            league.engine.update_tournament(league.tournament_id, league.admin, {'name': 'Renamed'})

        tournament = league.engine.get_tournament(league.tournament_id)
        assert tournament.name == 'Spring Cup'

    def test_version_increments(self, league):
        before = league.engine.get_tournament(league.tournament_id).version
        league.engine.update_tournament(league.tournament_id, league.admin, {'name': 'Renamed'})
        assert league.engine.get_tournament(league.tournament_id).version == before + 1
