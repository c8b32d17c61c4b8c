from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from . import json_body

bp = Blueprint('teams', __name__)


# ==================== Team CRUD ====================

@bp.route('/api/v1/teams', methods=['GET'])
@login_required
def list_teams():
    """List teams, optionally only those a user belongs to (?member_id=)."""
    teams = current_app.roster.list_teams(member_id=request.args.get('member_id'))
    return jsonify({
        'teams': [t.to_dict() for t in teams],
        'count': len(teams)
    })


@bp.route('/api/v1/teams', methods=['POST'])
@login_required
def create_team():
    data = json_body()
    team = current_app.roster.create_team(
        current_user,
        name=data.get('name'),
        logo_url=data.get('logo_url')
    )
    return jsonify({
        'message': 'Team created',
        'team': team.to_dict()
    }), 201


@bp.route('/api/v1/teams/<team_id>', methods=['GET'])
@login_required
def get_team(team_id: str):
    return jsonify(current_app.roster.get_team(team_id).to_dict())


@bp.route('/api/v1/teams/<team_id>', methods=['PUT'])
@login_required
def update_team(team_id: str):
    data = json_body()
    changes = {k: v for k, v in data.items() if k in ('name', 'logo_url')}
    team = current_app.roster.update_team(team_id, current_user, changes)
    return jsonify({
        'message': 'Team updated',
        'team': team.to_dict()
    })


@bp.route('/api/v1/teams/join', methods=['POST'])
@login_required
def join_team():
    team = current_app.roster.join_team(current_user, json_body().get('code'))
    return jsonify({
        'message': 'Joined team',
        'team': team.to_dict()
    })


# ==================== Membership ====================

@bp.route('/api/v1/teams/<team_id>/members', methods=['POST'])
@login_required
def add_member(team_id: str):
    team = current_app.roster.add_member(team_id, current_user, json_body().get('member_id'))
    return jsonify({
        'message': 'Member added',
        'team': team.to_dict()
    })


@bp.route('/api/v1/teams/<team_id>/members/<member_id>', methods=['DELETE'])
@login_required
def remove_member(team_id: str, member_id: str):
    team = current_app.roster.remove_member(team_id, current_user, member_id)
    return jsonify({
        'message': 'Member removed',
        'team': team.to_dict()
    })


@bp.route('/api/v1/teams/<team_id>/admins/<member_id>', methods=['PUT'])
@login_required
def toggle_admin(team_id: str, member_id: str):
    team = current_app.roster.toggle_admin(team_id, current_user, member_id)
    return jsonify({
        'message': 'Admin status updated',
        'team': team.to_dict()
    })


@bp.route('/api/v1/teams/<team_id>/roles', methods=['PUT'])
@login_required
def set_role(team_id: str):
    data = json_body()
    team = current_app.roster.set_role(
        team_id,
        current_user,
        member_id=data.get('member_id'),
        role=data.get('role')
    )
    return jsonify({
        'message': 'Role updated',
        'team': team.to_dict()
    })
