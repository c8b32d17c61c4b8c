from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from . import json_body

bp = Blueprint('users', __name__)


@bp.route('/api/v1/users/profile', methods=['GET'])
@login_required
def get_profile():
    return jsonify(current_user.to_dict())


@bp.route('/api/v1/users/profile', methods=['PUT'])
@login_required
def update_profile():
    user = current_app.identity.update_profile(current_user._get_current_object(), json_body())
    return jsonify({
        'message': 'Profile updated',
        'user': user.to_dict()
    })


@bp.route('/api/v1/users/<user_id>', methods=['GET'])
@login_required
def get_user(user_id: str):
    return jsonify(current_app.identity.get_user(user_id).to_dict())
