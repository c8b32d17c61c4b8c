import re
from datetime import datetime
from typing import List, Optional

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin

from shared.state_machine import MatchStateMachine, MatchState
from .codes import new_id
from .errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .scheduler import generate_round_robin, reorder_and_renumber

db = SQLAlchemy()

CARD_TYPES = ('Yellow', 'Red')
TEAM_ROLES = ('captain', 'vice_captain')

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_PATTERN = re.compile(r'^\d{2}:\d{2}(:\d{2})?$')


def non_negative_int(value, field: str) -> int:
    """Coerce ``value`` to an int >= 0 or raise ValidationError."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number")
    if number != value and not isinstance(value, str):
        raise ValidationError(f"{field} must be a whole number")
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


def _optional_slot(value, pattern, field: str, example: str) -> Optional[str]:
    # Empty string clears the slot
    if value is None or value == '':
        return None
    if not isinstance(value, str) or not pattern.match(value):
        raise ValidationError(f"{field} must look like {example}")
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    PROFILE_FIELDS = ('name', 'age', 'position', 'image_url', 'year_or_grade', 'mobile')

    id = db.Column(db.String(32), primary_key=True, default=lambda: new_id('user'))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    birthdate = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD, compared as a plain string

    # Profile
    name = db.Column(db.String(100), nullable=False)
    age = db.Column(db.Integer, nullable=True)
    position = db.Column(db.String(50), nullable=True)
    image_url = db.Column(db.Text, nullable=True)
    year_or_grade = db.Column(db.String(50), nullable=True)
    mobile = db.Column(db.String(30), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def get_id(self):
        """Return the user ID for Flask-Login."""
        return str(self.id)

    @property
    def profile(self) -> dict:
        return {field: getattr(self, field) for field in self.PROFILE_FIELDS}

    def to_dict(self):
        # birthdate doubles as the login secret, never expose it
        return {
            'id': self.id,
            'email': self.email,
            'profile': self.profile,
            'created_at': _iso(self.created_at),
        }


class TeamMembership(db.Model):
    __tablename__ = 'team_memberships'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.String(32), db.ForeignKey('teams.id'), nullable=False, index=True)
    user_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=False, index=True)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    team = db.relationship('Team', back_populates='memberships')
    user = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('team_id', 'user_id', name='unique_member_per_team'),
    )


class Team(db.Model):
    __tablename__ = 'teams'

    id = db.Column(db.String(32), primary_key=True, default=lambda: new_id('team'))
    name = db.Column(db.String(100), nullable=False)
    logo_url = db.Column(db.Text, nullable=True)
    invite_code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    captain_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=True)
    vice_captain_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=True)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    memberships = db.relationship(
        'TeamMembership',
        back_populates='team',
        cascade='all, delete-orphan',
        order_by='TeamMembership.id'
    )

    __mapper_args__ = {'version_id_col': version}

    @property
    def member_ids(self) -> List[str]:
        return [m.user_id for m in self.memberships]

    @property
    def admin_ids(self) -> List[str]:
        return [m.user_id for m in self.memberships if m.is_admin]

    def _membership(self, user_id: str) -> Optional[TeamMembership]:
        for membership in self.memberships:
            if membership.user_id == user_id:
                return membership
        return None

    def is_member(self, user_id: str) -> bool:
        return self._membership(user_id) is not None

    def is_admin(self, user_id: str) -> bool:
        membership = self._membership(user_id)
        return bool(membership and membership.is_admin)

    def ensure_admin(self, actor_id: str):
        if not self.is_admin(actor_id):
            raise AuthorizationError('Not authorized to manage this team')

    def touch(self):
        """Force an UPDATE of the team row so the version check runs on save."""
        self.updated_at = datetime.utcnow()

    def add_member(self, user_id: str, is_admin: bool = False) -> TeamMembership:
        if self.is_member(user_id):
            raise ConflictError('User is already in this team')
        membership = TeamMembership(user_id=user_id, is_admin=is_admin)
        self.memberships.append(membership)
        return membership

    def remove_member(self, user_id: str):
        """Drop a member along with every role they hold."""
        membership = self._membership(user_id)
        if membership is None:
            raise NotFoundError('User is not a member of this team')
        self.memberships.remove(membership)
        if self.captain_id == user_id:
            self.captain_id = None
        if self.vice_captain_id == user_id:
            self.vice_captain_id = None

    def toggle_admin(self, user_id: str) -> bool:
        """Flip admin status for a member; returns the new status."""
        membership = self._membership(user_id)
        if membership is None:
            raise ValidationError('Only team members can be made admins')
        membership.is_admin = not membership.is_admin
        return membership.is_admin

    def set_role(self, user_id: str, role: str) -> Optional[str]:
        """
        Toggle captain or vice-captain for a member.

        Assigning the current holder again clears the role. Returns the new
        holder (or None when cleared).
        """
        if role not in TEAM_ROLES:
            raise ValidationError('Invalid role specified', detail={'allowed': list(TEAM_ROLES)})
        if not self.is_member(user_id):
            raise ValidationError('Only team members can hold a role')

        field = 'captain_id' if role == 'captain' else 'vice_captain_id'
        holder = None if getattr(self, field) == user_id else user_id
        setattr(self, field, holder)
        return holder

    def to_summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'logo_url': self.logo_url,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'logo_url': self.logo_url,
            'invite_code': self.invite_code,
            'admin_ids': self.admin_ids,
            'member_ids': self.member_ids,
            'members': [m.user.to_dict() for m in self.memberships if m.user is not None],
            'captain_id': self.captain_id,
            'vice_captain_id': self.vice_captain_id,
            'version': self.version,
        }


class TournamentTeam(db.Model):
    __tablename__ = 'tournament_teams'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.String(32), db.ForeignKey('tournaments.id'), nullable=False, index=True)
    team_id = db.Column(db.String(32), db.ForeignKey('teams.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tournament = db.relationship('Tournament', back_populates='entries')
    team = db.relationship('Team')

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'team_id', name='unique_team_per_tournament'),
    )


class Tournament(db.Model):
    """
    Aggregate root for matches, goals and cards.

    All match mutation goes through the methods below; callers load the
    tournament, call one method, and commit the whole aggregate.
    """
    __tablename__ = 'tournaments'

    id = db.Column(db.String(32), primary_key=True, default=lambda: new_id('tournament'))
    name = db.Column(db.String(200), nullable=False)
    logo_url = db.Column(db.Text, nullable=True)
    admin_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=False)
    scheduling_done = db.Column(db.Boolean, nullable=False, default=False)
    invite_code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    entries = db.relationship(
        'TournamentTeam',
        back_populates='tournament',
        cascade='all, delete-orphan',
        order_by='TournamentTeam.position'
    )
    matches = db.relationship(
        'Match',
        back_populates='tournament',
        cascade='all, delete-orphan',
        order_by='Match.match_number'
    )

    __mapper_args__ = {'version_id_col': version}

    # ==================== Teams ====================

    @property
    def team_ids(self) -> List[str]:
        return [e.team_id for e in self.entries]

    def has_team(self, team_id: str) -> bool:
        return team_id in self.team_ids

    def ensure_admin(self, actor_id: str):
        if self.admin_id != actor_id:
            raise AuthorizationError('Not authorized')

    def touch(self):
        """Force an UPDATE of the tournament row so the version check runs on save."""
        self.updated_at = datetime.utcnow()

    def add_team(self, team_id: str) -> TournamentTeam:
        if self.has_team(team_id):
            raise ConflictError('Team already in tournament')
        entry = TournamentTeam(team_id=team_id, position=len(self.entries))
        self.entries.append(entry)
        return entry

    def _check_pairing(self, team_a_id: str, team_b_id: str):
        if not team_a_id or not team_b_id:
            raise ValidationError('Both team_a_id and team_b_id are required')
        if team_a_id == team_b_id:
            raise ValidationError('A team cannot play itself')
        missing = [t for t in (team_a_id, team_b_id) if not self.has_team(t)]
        if missing:
            raise ValidationError('Team is not in this tournament', detail={'team_ids': missing})

    # ==================== Schedule ====================

    def get_match(self, match_id: str) -> 'Match':
        for match in self.matches:
            if match.id == match_id:
                return match
        raise NotFoundError('Match not found')

    def reorder_matches(self) -> List['Match']:
        reorder_and_renumber(self.matches)
        self.matches.sort(key=lambda m: m.match_number)
        return list(self.matches)

    def schedule_round_robin(self) -> List['Match']:
        """Replace every match with a fresh round-robin. Recorded results are discarded."""
        if len(self.entries) < 2:
            raise ValidationError('Need at least 2 teams to schedule matches')

        self.matches = [Match.from_fixture(f) for f in generate_round_robin(self.team_ids)]
        self.scheduling_done = True
        return list(self.matches)

    def add_match(self, team_a_id: str, team_b_id: str, round: str,
                  date: str = None, time: str = None) -> 'Match':
        self._check_pairing(team_a_id, team_b_id)
        if not round or not isinstance(round, str):
            raise ValidationError('Round is required')

        match = Match(
            id=new_id('match'),
            match_number=len(self.matches) + 1,
            team_a_id=team_a_id,
            team_b_id=team_b_id,
            round=round,
            date=_optional_slot(date, DATE_PATTERN, 'date', 'YYYY-MM-DD'),
            time=_optional_slot(time, TIME_PATTERN, 'time', 'HH:MM'),
            score_a=0,
            score_b=0,
            status=MatchState.SCHEDULED.value,
        )
        self.matches.append(match)
        self.reorder_matches()
        return match

    def update_match(self, match_id: str, changes: dict) -> 'Match':
        """
        Apply team/date/time changes, then re-sort and re-number every match.

        Keys absent from ``changes`` are left alone; an empty date or time
        clears it. Teams can only change while the match is still Scheduled.
        """
        match = self.get_match(match_id)
        sm = MatchStateMachine.from_state_string(match.status)
        sm.require('reschedule')

        team_a_id = changes.get('team_a_id') or match.team_a_id
        team_b_id = changes.get('team_b_id') or match.team_b_id
        if (team_a_id, team_b_id) != (match.team_a_id, match.team_b_id):
            sm.require('edit')
        self._check_pairing(team_a_id, team_b_id)

        date = match.date
        time = match.time
        if 'date' in changes:
            date = _optional_slot(changes['date'], DATE_PATTERN, 'date', 'YYYY-MM-DD')
        if 'time' in changes:
            time = _optional_slot(changes['time'], TIME_PATTERN, 'time', 'HH:MM')

        match.team_a_id = team_a_id
        match.team_b_id = team_b_id
        match.date = date
        match.time = time

        self.reorder_matches()
        return match

    def remove_match(self, match_id: str):
        match = self.get_match(match_id)
        self.matches.remove(match)
        self.reorder_matches()

    # ==================== Live scoring ====================

    def start_match(self, match_id: str) -> 'Match':
        match = self.get_match(match_id)
        sm = MatchStateMachine.from_state_string(match.status)
        match.status = sm.transition('start').value
        return match

    def end_match(self, match_id: str, penalty_scores: dict = None) -> 'Match':
        match = self.get_match(match_id)
        sm = MatchStateMachine.from_state_string(match.status)
        sm.require('end')

        penalties = None
        if penalty_scores:
            if not isinstance(penalty_scores, dict):
                raise ValidationError('penalty_scores must be an object')
            penalties = (
                non_negative_int(penalty_scores.get('penalty_score_a'), 'penalty_score_a'),
                non_negative_int(penalty_scores.get('penalty_score_b'), 'penalty_score_b'),
            )

        match.winner_id = match.resolve_winner(penalties)
        match.status = sm.transition('end').value
        return match

    def record_goal(self, match_id: str, benefiting_team_id: str, scorer_id: str = None,
                    scorer_name: str = None, assist_id: str = None, assist_name: str = None,
                    is_own_goal: bool = False, minute: int = 0) -> 'Goal':
        match = self.get_match(match_id)
        MatchStateMachine.from_state_string(match.status).require('record_goal')

        if not benefiting_team_id:
            raise ValidationError('Benefiting team ID is required.')
        side = match.side_of(benefiting_team_id)
        if side is None:
            raise ValidationError('Benefiting team is not in this match.')
        minute = non_negative_int(minute, 'minute')
        if not isinstance(is_own_goal, bool):
            raise ValidationError('is_own_goal must be true or false')

        if side == 'a':
            match.score_a += 1
        else:
            match.score_b += 1

        goal = Goal(
            scorer_id=scorer_id,
            scorer_name=scorer_name,
            assist_id=assist_id,
            assist_name=assist_name,
            minute=minute,
            is_own_goal=is_own_goal,
            team_id=benefiting_team_id,
        )
        match.goals.append(goal)
        return goal

    def record_card(self, match_id: str, card_type: str, team_id: str, player_id: str = None,
                    player_name: str = None, minute: int = 0) -> 'Card':
        match = self.get_match(match_id)
        MatchStateMachine.from_state_string(match.status).require('record_card')

        if card_type not in CARD_TYPES:
            raise ValidationError('Invalid card type', detail={'allowed': list(CARD_TYPES)})
        if match.side_of(team_id) is None:
            raise ValidationError("Player's team is not in this match")
        minute = non_negative_int(minute, 'minute')

        card = Card(
            player_id=player_id,
            player_name=player_name,
            minute=minute,
            type=card_type,
            team_id=team_id,
        )
        match.cards.append(card)
        return card

    def set_player_of_the_match(self, match_id: str, player_id: str) -> 'Match':
        match = self.get_match(match_id)
        MatchStateMachine.from_state_string(match.status).require('set_potm')
        match.player_of_the_match_id = player_id
        return match

    def to_dict(self, include_matches: bool = True):
        data = {
            'id': self.id,
            'name': self.name,
            'logo_url': self.logo_url,
            'admin_id': self.admin_id,
            'invite_code': self.invite_code,
            'scheduling_done': self.scheduling_done,
            'team_ids': self.team_ids,
            'teams': [e.team.to_summary() for e in self.entries if e.team is not None],
            'match_count': len(self.matches),
            'version': self.version,
            'created_at': _iso(self.created_at),
        }
        if include_matches:
            data['matches'] = [m.to_dict() for m in self.matches]
        return data


class Match(db.Model):
    __tablename__ = 'matches'

    id = db.Column(db.String(32), primary_key=True, default=lambda: new_id('match'))
    tournament_id = db.Column(db.String(32), db.ForeignKey('tournaments.id'), nullable=False, index=True)
    match_number = db.Column(db.Integer, nullable=False)
    round = db.Column(db.String(100), nullable=False)

    team_a_id = db.Column(db.String(32), db.ForeignKey('teams.id'), nullable=False)
    team_b_id = db.Column(db.String(32), db.ForeignKey('teams.id'), nullable=False)
    date = db.Column(db.String(10), nullable=True)
    time = db.Column(db.String(8), nullable=True)

    score_a = db.Column(db.Integer, nullable=False, default=0)
    score_b = db.Column(db.Integer, nullable=False, default=0)
    penalty_score_a = db.Column(db.Integer, nullable=True)
    penalty_score_b = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=MatchState.SCHEDULED.value)
    winner_id = db.Column(db.String(32), db.ForeignKey('teams.id'), nullable=True)
    player_of_the_match_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tournament = db.relationship('Tournament', back_populates='matches')
    goals = db.relationship('Goal', back_populates='match', cascade='all, delete-orphan', order_by='Goal.id')
    cards = db.relationship('Card', back_populates='match', cascade='all, delete-orphan', order_by='Card.id')

    @classmethod
    def from_fixture(cls, fixture) -> 'Match':
        return cls(
            id=new_id('match'),
            match_number=fixture.match_number,
            team_a_id=fixture.team_a_id,
            team_b_id=fixture.team_b_id,
            round=fixture.round,
            score_a=0,
            score_b=0,
            status=MatchState.SCHEDULED.value,
        )

    def side_of(self, team_id: str) -> Optional[str]:
        if team_id and team_id == self.team_a_id:
            return 'a'
        if team_id and team_id == self.team_b_id:
            return 'b'
        return None

    def resolve_winner(self, penalties: tuple = None) -> Optional[str]:
        """
        Higher score wins; on a level score, higher penalty score wins and the
        shoot-out is stored. Otherwise the match is a draw (None).
        """
        if self.score_a != self.score_b:
            return self.team_a_id if self.score_a > self.score_b else self.team_b_id

        if penalties is not None:
            penalty_a, penalty_b = penalties
            if penalty_a != penalty_b:
                self.penalty_score_a = penalty_a
                self.penalty_score_b = penalty_b
                return self.team_a_id if penalty_a > penalty_b else self.team_b_id

        return None

    def to_dict(self):
        return {
            'id': self.id,
            'match_number': self.match_number,
            'round': self.round,
            'team_a_id': self.team_a_id,
            'team_b_id': self.team_b_id,
            'date': self.date,
            'time': self.time,
            'score_a': self.score_a,
            'score_b': self.score_b,
            'penalty_score_a': self.penalty_score_a,
            'penalty_score_b': self.penalty_score_b,
            'status': self.status,
            'winner_id': self.winner_id,
            'player_of_the_match_id': self.player_of_the_match_id,
            'goals': [g.to_dict() for g in self.goals],
            'cards': [c.to_dict() for c in self.cards],
        }


class Goal(db.Model):
    __tablename__ = 'goals'

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(32), db.ForeignKey('matches.id'), nullable=False, index=True)
    scorer_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=True)
    scorer_name = db.Column(db.String(100), nullable=True)
    assist_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=True)
    assist_name = db.Column(db.String(100), nullable=True)
    minute = db.Column(db.Integer, nullable=False, default=0)
    is_own_goal = db.Column(db.Boolean, nullable=False, default=False)
    team_id = db.Column(db.String(32), db.ForeignKey('teams.id'), nullable=False)  # side credited
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    match = db.relationship('Match', back_populates='goals')

    def to_dict(self):
        return {
            'scorer_id': self.scorer_id,
            'scorer_name': self.scorer_name,
            'assist_id': self.assist_id,
            'assist_name': self.assist_name,
            'minute': self.minute,
            'is_own_goal': self.is_own_goal,
            'team_id': self.team_id,
            'created_at': _iso(self.created_at),
        }


class Card(db.Model):
    __tablename__ = 'cards'

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(32), db.ForeignKey('matches.id'), nullable=False, index=True)
    player_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=True)
    player_name = db.Column(db.String(100), nullable=True)
    minute = db.Column(db.Integer, nullable=False, default=0)
    type = db.Column(db.String(10), nullable=False)
    team_id = db.Column(db.String(32), db.ForeignKey('teams.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    match = db.relationship('Match', back_populates='cards')

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'player_name': self.player_name,
            'minute': self.minute,
            'type': self.type,
            'team_id': self.team_id,
            'created_at': _iso(self.created_at),
        }
