from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from . import json_body

bp = Blueprint('tournaments', __name__)


# ==================== Tournament CRUD ====================

@bp.route('/api/v1/tournaments', methods=['GET'])
@login_required
def list_tournaments():
    """List tournaments, optionally only those run by one admin (?admin_id=)."""
    tournaments = current_app.engine.list_tournaments(admin_id=request.args.get('admin_id'))
    return jsonify({
        'tournaments': [t.to_dict(include_matches=False) for t in tournaments],
        'count': len(tournaments)
    })


@bp.route('/api/v1/tournaments', methods=['POST'])
@login_required
def create_tournament():
    data = json_body()
    tournament = current_app.engine.create_tournament(
        current_user,
        name=data.get('name'),
        logo_url=data.get('logo_url')
    )
    return jsonify({
        'message': 'Tournament created',
        'tournament': tournament.to_dict()
    }), 201


@bp.route('/api/v1/tournaments/<tournament_id>', methods=['GET'])
@login_required
def get_tournament(tournament_id: str):
    return jsonify(current_app.engine.get_tournament(tournament_id).to_dict())


@bp.route('/api/v1/tournaments/<tournament_id>', methods=['PUT'])
@login_required
def update_tournament(tournament_id: str):
    data = json_body()
    changes = {k: v for k, v in data.items() if k in ('name', 'logo_url')}
    tournament = current_app.engine.update_tournament(tournament_id, current_user, changes)
    return jsonify({
        'message': 'Tournament updated',
        'tournament': tournament.to_dict()
    })


# ==================== Teams ====================

@bp.route('/api/v1/tournaments/join', methods=['POST'])
@login_required
def join_tournament():
    data = json_body()
    tournament = current_app.engine.join_tournament(
        current_user,
        invite_code=data.get('invite_code'),
        team_id=data.get('team_id')
    )
    return jsonify({
        'message': 'Team joined tournament',
        'tournament': tournament.to_dict()
    })


@bp.route('/api/v1/tournaments/<tournament_id>/teams', methods=['POST'])
@login_required
def add_team(tournament_id: str):
    tournament = current_app.engine.add_team(
        tournament_id,
        current_user,
        json_body().get('team_code_or_id')
    )
    return jsonify({
        'message': 'Team added',
        'tournament': tournament.to_dict()
    })


# ==================== Schedule ====================

@bp.route('/api/v1/tournaments/<tournament_id>/schedule', methods=['POST'])
@login_required
def generate_schedule(tournament_id: str):
    """Generate a round-robin. Replaces every existing match."""
    tournament = current_app.engine.schedule(tournament_id, current_user)
    return jsonify({
        'message': 'Schedule generated',
        'matches_count': len(tournament.matches),
        'tournament': tournament.to_dict()
    })


@bp.route('/api/v1/tournaments/<tournament_id>/standings', methods=['GET'])
@login_required
def get_standings(tournament_id: str):
    standings = current_app.engine.get_standings(tournament_id)
    return jsonify({
        'tournament_id': tournament_id,
        'standings': standings
    })


@bp.route('/api/v1/tournaments/<tournament_id>/matches', methods=['POST'])
@login_required
def add_match(tournament_id: str):
    data = json_body()
    match = current_app.engine.add_match(
        tournament_id,
        current_user,
        team_a_id=data.get('team_a_id'),
        team_b_id=data.get('team_b_id'),
        round=data.get('round'),
        date=data.get('date'),
        time=data.get('time')
    )
    return jsonify({
        'message': 'Match added',
        'match': match.to_dict()
    }), 201


@bp.route('/api/v1/tournaments/<tournament_id>/matches/<match_id>', methods=['PUT'])
@login_required
def update_match(tournament_id: str, match_id: str):
    match = current_app.engine.update_match(tournament_id, match_id, current_user, json_body())
    return jsonify({
        'message': 'Match updated',
        'match': match.to_dict()
    })


@bp.route('/api/v1/tournaments/<tournament_id>/matches/<match_id>', methods=['DELETE'])
@login_required
def remove_match(tournament_id: str, match_id: str):
    tournament = current_app.engine.remove_match(tournament_id, match_id, current_user)
    return jsonify({
        'message': 'Match removed',
        'tournament': tournament.to_dict()
    })


# ==================== Live scoring ====================

@bp.route('/api/v1/tournaments/<tournament_id>/matches/<match_id>/start', methods=['PUT'])
@login_required
def start_match(tournament_id: str, match_id: str):
    match = current_app.engine.start_match(tournament_id, match_id, current_user)
    return jsonify({
        'message': 'Match started',
        'match': match.to_dict()
    })


@bp.route('/api/v1/tournaments/<tournament_id>/matches/<match_id>/end', methods=['PUT'])
@login_required
def end_match(tournament_id: str, match_id: str):
    match = current_app.engine.end_match(
        tournament_id,
        match_id,
        current_user,
        penalty_scores=json_body().get('penalty_scores')
    )
    return jsonify({
        'message': 'Match ended',
        'match': match.to_dict()
    })


@bp.route('/api/v1/tournaments/<tournament_id>/matches/<match_id>/goals', methods=['POST'])
@login_required
def record_goal(tournament_id: str, match_id: str):
    data = json_body()
    match = current_app.engine.record_goal(
        tournament_id,
        match_id,
        current_user,
        benefiting_team_id=data.get('benefiting_team_id'),
        scorer_id=data.get('scorer_id'),
        scorer_name=data.get('scorer_name'),
        assist_id=data.get('assist_id'),
        assist_name=data.get('assist_name'),
        is_own_goal=data.get('is_own_goal', False),
        minute=data.get('minute', 0)
    )
    return jsonify({
        'message': 'Goal recorded',
        'match': match.to_dict()
    }), 201


@bp.route('/api/v1/tournaments/<tournament_id>/matches/<match_id>/cards', methods=['POST'])
@login_required
def record_card(tournament_id: str, match_id: str):
    data = json_body()
    match = current_app.engine.record_card(
        tournament_id,
        match_id,
        current_user,
        card_type=data.get('card_type'),
        team_id=data.get('team_id'),
        player_id=data.get('player_id'),
        player_name=data.get('player_name'),
        minute=data.get('minute', 0)
    )
    return jsonify({
        'message': 'Card recorded',
        'match': match.to_dict()
    }), 201


@bp.route('/api/v1/tournaments/<tournament_id>/matches/<match_id>/potm', methods=['PUT'])
@login_required
def set_player_of_the_match(tournament_id: str, match_id: str):
    match = current_app.engine.set_player_of_the_match(
        tournament_id,
        match_id,
        current_user,
        player_id=json_body().get('player_id')
    )
    return jsonify({
        'message': 'Player of the match set',
        'match': match.to_dict()
    })
