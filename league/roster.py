import logging
from typing import List, Optional

from flask import current_app

from .base_service import BaseService
from .codes import new_id, normalize_invite_code
from .errors import NotFoundError, ValidationError
from .models import db, Team, User

logger = logging.getLogger(__name__)


class RosterRegistry(BaseService):
    """
    Teams and their members.

    Every administrative call checks that the actor is a team admin before
    touching anything, then commits the team as one unit.
    """

    def create_team(self, actor: User, name: str, logo_url: str = None) -> Team:
        """Create a team with the actor as its only member and admin."""
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            raise ValidationError('Team name is required')

        length = current_app.config.get('TEAM_INVITE_CODE_LENGTH', 8)
        team = Team(
            id=new_id('team'),
            name=name,
            logo_url=logo_url,
            invite_code=self._allocate_invite_code(length, self._code_taken),
        )
        team.add_member(actor.id, is_admin=True)
        db.session.add(team)
        self._commit('create team')

        logger.info(f"Team {team.id} created by {actor.id}")
        return team

    def _code_taken(self, code: str) -> bool:
        return Team.query.filter_by(invite_code=code).first() is not None

    def list_teams(self, member_id: Optional[str] = None) -> List[Team]:
        query = Team.query
        if member_id:
            query = query.filter(Team.memberships.any(user_id=member_id))
        return query.order_by(Team.created_at).all()

    def get_team(self, team_id: str) -> Team:
        team = db.session.get(Team, team_id) if team_id else None
        if team is None:
            raise NotFoundError('Team not found')
        return team

    def find_by_invite_code(self, code: str) -> Optional[Team]:
        code = normalize_invite_code(code)
        if not code:
            return None
        return Team.query.filter_by(invite_code=code).first()

    def resolve(self, team_code_or_id: str) -> Team:
        """Look a team up by id first, then by invite code."""
        team = db.session.get(Team, team_code_or_id) if team_code_or_id else None
        if team is None:
            team = self.find_by_invite_code(team_code_or_id)
        if team is None:
            raise NotFoundError('Team not found')
        return team

    def update_team(self, team_id: str, actor: User, changes: dict) -> Team:
        team = self.get_team(team_id)
        team.ensure_admin(actor.id)

        if 'name' in changes:
            name = changes['name']
            if not isinstance(name, str) or not name.strip():
                raise ValidationError('Team name cannot be empty')
            team.name = name.strip()
        if 'logo_url' in changes:
            team.logo_url = changes['logo_url'] or None

        team.touch()
        self._commit('update team')
        return team

    def join_team(self, actor: User, code: str) -> Team:
        if not normalize_invite_code(code):
            raise ValidationError('Invite code is required')
        team = self.find_by_invite_code(code)
        if team is None:
            raise NotFoundError('Invalid team code')

        team.add_member(actor.id)
        team.touch()
        self._commit('join team')

        logger.info(f"User {actor.id} joined team {team.id}")
        return team

    def add_member(self, team_id: str, actor: User, member_id: str) -> Team:
        team = self.get_team(team_id)
        team.ensure_admin(actor.id)
        if not member_id:
            raise ValidationError('member_id is required')
        if db.session.get(User, member_id) is None:
            raise NotFoundError('User not found')

        team.add_member(member_id)
        team.touch()
        self._commit('add member')
        return team

    def remove_member(self, team_id: str, actor: User, member_id: str) -> Team:
        team = self.get_team(team_id)
        team.ensure_admin(actor.id)

        team.remove_member(member_id)
        team.touch()
        self._commit('remove member')

        logger.info(f"User {member_id} removed from team {team.id} by {actor.id}")
        return team

    def toggle_admin(self, team_id: str, actor: User, member_id: str) -> Team:
        team = self.get_team(team_id)
        team.ensure_admin(actor.id)

        now_admin = team.toggle_admin(member_id)
        team.touch()
        self._commit('toggle admin')

        logger.info(f"Admin status of {member_id} in team {team.id} set to {now_admin}")
        return team

    def set_role(self, team_id: str, actor: User, member_id: str, role: str) -> Team:
        team = self.get_team(team_id)
        team.ensure_admin(actor.id)

        team.set_role(member_id, role)
        team.touch()
        self._commit('set role')
        return team
