from flask import Blueprint, current_app, jsonify

from . import json_body

bp = Blueprint('auth', __name__)


@bp.route('/api/v1/auth/register', methods=['POST'])
def register():
    """Create an account and return a bearer token."""
    data = json_body()
    user, token = current_app.identity.register(
        email=data.get('email'),
        name=data.get('name'),
        birthdate=data.get('birthdate')
    )
    return jsonify({
        'message': 'User registered',
        'token': token,
        'user': user.to_dict()
    }), 201


@bp.route('/api/v1/auth/login', methods=['POST'])
def login():
    data = json_body()
    user, token = current_app.identity.login(
        email=data.get('email'),
        birthdate=data.get('birthdate')
    )
    return jsonify({
        'token': token,
        'user': user.to_dict()
    })
