import logging
from typing import List, Optional

from flask import current_app

from shared.events import (
    Event,
    schedule_generated_event,
    schedule_reordered_event,
    team_joined_event,
    match_started_event,
    match_finished_event,
    goal_recorded_event,
    card_recorded_event,
    player_of_the_match_event,
)
from shared.pubsub import EventPublisher
from .base_service import BaseService
from .codes import new_id, normalize_invite_code
from .errors import NotFoundError, ValidationError
from .models import db, Match, Tournament, User
from .roster import RosterRegistry
from .standings import compute_standings

logger = logging.getLogger(__name__)


class TournamentEngine(BaseService):
    """
    Tournament lifecycle, fixtures and live scoring.

    Each operation loads the tournament aggregate, checks the actor, applies
    one change through the aggregate and commits it. Events go out to Redis
    only after the commit succeeds.
    """

    def __init__(self, roster: RosterRegistry, publisher: EventPublisher = None):
        self.roster = roster
        self.publisher = publisher

    # ==================== Helpers ====================

    def _publish(self, event: Event):
        if self.publisher is not None:
            self.publisher.publish_tournament_event(event)

    def _save(self, tournament: Tournament, operation: str):
        tournament.touch()
        self._commit(operation)

    def _load_for_admin(self, tournament_id: str, actor: User) -> Tournament:
        tournament = self.get_tournament(tournament_id)
        tournament.ensure_admin(actor.id)
        return tournament

    def _require_user(self, user_id: Optional[str], field: str):
        if user_id and db.session.get(User, user_id) is None:
            raise NotFoundError(f'User referenced by {field} not found')

    def _match_order(self, tournament: Tournament) -> List[dict]:
        return [{'match_id': m.id, 'match_number': m.match_number} for m in tournament.matches]

    # ==================== Tournaments ====================

    def create_tournament(self, actor: User, name: str, logo_url: str = None) -> Tournament:
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            raise ValidationError('Tournament name is required')

        length = current_app.config.get('TOURNAMENT_INVITE_CODE_LENGTH', 10)
        tournament = Tournament(
            id=new_id('tournament'),
            name=name,
            logo_url=logo_url,
            admin_id=actor.id,
            scheduling_done=False,
            invite_code=self._allocate_invite_code(length, self._code_taken),
        )
        db.session.add(tournament)
        self._commit('create tournament')

        logger.info(f"Tournament {tournament.id} created by {actor.id}")
        return tournament

    def _code_taken(self, code: str) -> bool:
        return Tournament.query.filter_by(invite_code=code).first() is not None

    def list_tournaments(self, admin_id: Optional[str] = None) -> List[Tournament]:
        query = Tournament.query
        if admin_id:
            query = query.filter_by(admin_id=admin_id)
        return query.order_by(Tournament.created_at.desc()).all()

    def get_tournament(self, tournament_id: str) -> Tournament:
        tournament = db.session.get(Tournament, tournament_id) if tournament_id else None
        if tournament is None:
            raise NotFoundError('Tournament not found')
        return tournament

    def update_tournament(self, tournament_id: str, actor: User, changes: dict) -> Tournament:
        tournament = self._load_for_admin(tournament_id, actor)

        if 'name' in changes:
            name = changes['name']
            if not isinstance(name, str) or not name.strip():
                raise ValidationError('Tournament name cannot be empty')
            tournament.name = name.strip()
        if 'logo_url' in changes:
            tournament.logo_url = changes['logo_url'] or None

        self._save(tournament, 'update tournament')
        return tournament

    # ==================== Teams ====================

    def join_tournament(self, actor: User, invite_code: str, team_id: str) -> Tournament:
        """Enter a team the actor administers using the tournament's invite code."""
        code = normalize_invite_code(invite_code)
        if not code or not team_id:
            raise ValidationError('invite_code and team_id are required')

        tournament = Tournament.query.filter_by(invite_code=code).first()
        if tournament is None:
            raise NotFoundError('Invalid tournament code')

        team = self.roster.get_team(team_id)
        team.ensure_admin(actor.id)

        tournament.add_team(team.id)
        self._save(tournament, 'join tournament')

        logger.info(f"Team {team.id} joined tournament {tournament.id}")
        self._publish(team_joined_event(tournament.id, team.id))
        return tournament

    def add_team(self, tournament_id: str, actor: User, team_code_or_id: str) -> Tournament:
        tournament = self._load_for_admin(tournament_id, actor)
        if not team_code_or_id:
            raise ValidationError('team_code_or_id is required')

        team = self.roster.resolve(team_code_or_id)
        tournament.add_team(team.id)
        self._save(tournament, 'add team')

        logger.info(f"Team {team.id} added to tournament {tournament.id}")
        self._publish(team_joined_event(tournament.id, team.id))
        return tournament

    # ==================== Schedule ====================

    def schedule(self, tournament_id: str, actor: User) -> Tournament:
        """Generate a single round-robin, replacing any existing matches."""
        tournament = self._load_for_admin(tournament_id, actor)

        matches = tournament.schedule_round_robin()
        self._save(tournament, 'generate schedule')

        logger.info(f"Generated {len(matches)} matches for tournament {tournament.id}")
        self._publish(schedule_generated_event(tournament.id, len(matches)))
        return tournament

    def add_match(self, tournament_id: str, actor: User, team_a_id: str, team_b_id: str,
                  round: str, date: str = None, time: str = None) -> Match:
        tournament = self._load_for_admin(tournament_id, actor)

        match = tournament.add_match(team_a_id, team_b_id, round, date=date, time=time)
        self._save(tournament, 'add match')

        self._publish(schedule_reordered_event(tournament.id, self._match_order(tournament)))
        return match

    def update_match(self, tournament_id: str, match_id: str, actor: User, changes: dict) -> Match:
        tournament = self._load_for_admin(tournament_id, actor)

        allowed = {'team_a_id', 'team_b_id', 'date', 'time'}
        match = tournament.update_match(match_id, {k: v for k, v in changes.items() if k in allowed})
        self._save(tournament, 'update match')

        self._publish(schedule_reordered_event(tournament.id, self._match_order(tournament)))
        return match

    def remove_match(self, tournament_id: str, match_id: str, actor: User) -> Tournament:
        tournament = self._load_for_admin(tournament_id, actor)

        tournament.remove_match(match_id)
        self._save(tournament, 'remove match')

        logger.info(f"Match {match_id} removed from tournament {tournament.id}")
        self._publish(schedule_reordered_event(tournament.id, self._match_order(tournament)))
        return tournament

    # ==================== Live scoring ====================

    def start_match(self, tournament_id: str, match_id: str, actor: User) -> Match:
        tournament = self._load_for_admin(tournament_id, actor)

        previous = tournament.get_match(match_id).status
        match = tournament.start_match(match_id)
        if previous == match.status:
            return match

        self._save(tournament, 'start match')

        logger.info(f"Match {match.id} in tournament {tournament.id} started")
        self._publish(match_started_event(tournament.id, match.id, match.match_number))
        return match

    def end_match(self, tournament_id: str, match_id: str, actor: User,
                  penalty_scores: dict = None) -> Match:
        tournament = self._load_for_admin(tournament_id, actor)

        match = tournament.end_match(match_id, penalty_scores)
        self._save(tournament, 'end match')

        logger.info(
            f"Match {match.id} in tournament {tournament.id} finished "
            f"{match.score_a}-{match.score_b}, winner {match.winner_id}"
        )
        self._publish(match_finished_event(
            tournament.id, match.id, match.winner_id, match.score_a, match.score_b
        ))
        return match

    def record_goal(self, tournament_id: str, match_id: str, actor: User, benefiting_team_id: str,
                    scorer_id: str = None, scorer_name: str = None, assist_id: str = None,
                    assist_name: str = None, is_own_goal: bool = False, minute: int = 0) -> Match:
        tournament = self._load_for_admin(tournament_id, actor)
        self._require_user(scorer_id, 'scorer_id')
        self._require_user(assist_id, 'assist_id')

        tournament.record_goal(
            match_id,
            benefiting_team_id,
            scorer_id=scorer_id,
            scorer_name=scorer_name,
            assist_id=assist_id,
            assist_name=assist_name,
            is_own_goal=is_own_goal,
            minute=minute,
        )
        self._save(tournament, 'record goal')

        match = tournament.get_match(match_id)
        self._publish(goal_recorded_event(
            tournament.id, match.id, benefiting_team_id, match.score_a, match.score_b
        ))
        return match

    def record_card(self, tournament_id: str, match_id: str, actor: User, card_type: str,
                    team_id: str, player_id: str = None, player_name: str = None,
                    minute: int = 0) -> Match:
        tournament = self._load_for_admin(tournament_id, actor)
        self._require_user(player_id, 'player_id')

        tournament.record_card(
            match_id,
            card_type,
            team_id,
            player_id=player_id,
            player_name=player_name,
            minute=minute,
        )
        self._save(tournament, 'record card')

        self._publish(card_recorded_event(tournament.id, match_id, team_id, card_type))
        return tournament.get_match(match_id)

    def set_player_of_the_match(self, tournament_id: str, match_id: str, actor: User,
                                player_id: str) -> Match:
        tournament = self._load_for_admin(tournament_id, actor)
        if not player_id:
            raise ValidationError('player_id is required')
        self._require_user(player_id, 'player_id')

        match = tournament.set_player_of_the_match(match_id, player_id)
        self._save(tournament, 'set player of the match')

        self._publish(player_of_the_match_event(tournament.id, match.id, player_id))
        return match

    # ==================== Table ====================

    def get_standings(self, tournament_id: str) -> List[dict]:
        tournament = self.get_tournament(tournament_id)
        return [row.to_dict() for row in compute_standings(tournament.team_ids, tournament.matches)]
