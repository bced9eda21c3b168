from flask import Blueprint, Response, current_app, jsonify, request
from flask_jwt_extended import jwt_required
from studenthousing import limiter
from studenthousing.services.change_feed import event_stream
from studenthousing.services.messaging import MessagingService
from studenthousing.services.session import current_session
from studenthousing.utils.validators import parse_int

conversations_bp = Blueprint('conversations', __name__)


@conversations_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
def list_conversations():
    """Conversations of the current user, most recent activity first"""
    messaging = MessagingService(current_session())
    return jsonify(messaging.list_conversations()), 200


@conversations_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@limiter.limit("30 per hour")
def start_conversation():
    """Contact the owner of a property, reusing an existing conversation"""
    data = request.get_json() or {}
    property_id = parse_int(data.get('property_id'))
    if not property_id:
        return jsonify({'message': 'Property ID is required'}), 400

    messaging = MessagingService(current_session())
    conversation, message, created = messaging.start_conversation(property_id, data.get('message'))

    return jsonify({
        'message': 'Conversation started' if created else 'Conversation already exists',
        'conversation': messaging.summarize(conversation, message),
        'sent': message.to_dict() if message else None,
    }), 201 if created else 200


@conversations_bp.route('/unread', methods=['GET'])
@jwt_required()
def get_unread_messages():
    """Latest unread messages across all conversations"""
    limit = min(request.args.get('limit', 10, type=int), 50)
    messaging = MessagingService(current_session())
    return jsonify(messaging.unread_messages(limit=limit)), 200


@conversations_bp.route('/<int:conversation_id>', methods=['GET'])
@jwt_required()
def select_conversation(conversation_id):
    """Message history of a conversation; marks incoming messages as read"""
    messaging = MessagingService(current_session())
    return jsonify(messaging.select_conversation(conversation_id)), 200


@conversations_bp.route('/<int:conversation_id>/read', methods=['POST'])
@jwt_required()
def mark_read(conversation_id):
    """Mark the counterpart's messages in a conversation as read"""
    messaging = MessagingService(current_session())
    marked = messaging.mark_read(conversation_id)
    return jsonify({'marked_read': marked, 'total_unread': messaging.total_unread()}), 200


@conversations_bp.route('/<int:conversation_id>/messages', methods=['POST'])
@jwt_required()
@limiter.limit("60 per minute")
def send_message(conversation_id):
    """Send a message in a conversation"""
    data = request.get_json() or {}
    messaging = MessagingService(current_session())
    message = messaging.send_message(conversation_id, data.get('body'))

    return jsonify({
        'message': 'Message sent',
        'sent': message.to_dict(include_sender=True),
    }), 201


@conversations_bp.route('/stream', methods=['GET'])
@jwt_required()
@limiter.exempt
def stream():
    """Server-sent events for message inserts and read updates"""
    messaging = MessagingService(current_session())
    subscription = messaging.subscribe(request.args.get('conversation_id', type=int))
    keepalive = current_app.config['STREAM_KEEPALIVE_SECONDS']

    response = Response(
        event_stream(subscription, keepalive=keepalive),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )
    response.call_on_close(subscription.close)
    return response
