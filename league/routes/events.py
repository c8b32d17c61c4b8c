import redis
from flask import Blueprint, Response, current_app, jsonify, request
from flask_login import login_required

from shared.pubsub import channel_for

bp = Blueprint('events', __name__)


@bp.route('/api/v1/tournaments/<tournament_id>/events')
@login_required
def tournament_events(tournament_id: str):
    """SSE stream of live events for one tournament."""
    current_app.engine.get_tournament(tournament_id)
    redis_url = current_app.config['REDIS_URL']

    def generate():
        # Dedicated connection with no read timeout for the long-lived stream
        sse_redis = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=None,
            socket_connect_timeout=5
        )
        pubsub = sse_redis.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(channel_for(tournament_id))

        yield f"data: {{\"type\":\"connected\",\"tournament_id\":\"{tournament_id}\"}}\n\n"

        try:
            while True:
                message = pubsub.get_message(timeout=30)
                if message and message['type'] == 'message':
                    yield f"data: {message['data']}\n\n"
                else:
                    yield ": keepalive\n\n"
        finally:
            pubsub.close()
            sse_redis.close()

    return Response(generate(), mimetype='text/event-stream', headers={
        'Cache-Control': 'no-cache',
        'X-Accel-Buffering': 'no'
    })


@bp.route('/api/v1/tournaments/<tournament_id>/events/recent')
@login_required
def recent_events(tournament_id: str):
    """Most recent logged events, newest first. Empty when publishing is off."""
    current_app.engine.get_tournament(tournament_id)
    count = request.args.get('count', 50, type=int)

    events = []
    if current_app.publisher is not None:
        events = [e.to_dict() for e in current_app.publisher.get_recent_events(tournament_id, count)]

    return jsonify({
        'tournament_id': tournament_id,
        'events': events,
        'count': len(events)
    })
