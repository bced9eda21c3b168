"""Conversations between tenants and owners.

Listing conversations is done with a fixed number of queries whatever the
number of conversations: one for the conversations with their property and
participants, one grouped count of unread messages and one for the latest
message of each conversation.
"""

import logging
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from studenthousing import db
from studenthousing.models.conversation import Conversation, Message
from studenthousing.models.property import Property
from studenthousing.services.change_feed import ChangeEvent, change_feed
from studenthousing.services.errors import NotFound, ServiceError, ValidationError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 5000
NO_MESSAGES_PREVIEW = 'No messages yet'


def clean_body(body):
    """Strip a message body and reject empty or oversized ones"""
    body = (body or '').strip()
    if not body:
        raise ValidationError('Message cannot be empty')
    if len(body) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f'Message cannot exceed {MAX_MESSAGE_LENGTH} characters')
    return body


class MessagingService:
    def __init__(self, session):
        self.session = session

    @property
    def user_id(self):
        return self.session.require_user().id

    def get_conversation(self, conversation_id):
        """Conversation the current user takes part in, or NotFound"""
        conversation = db.session.get(Conversation, conversation_id)
        if conversation is None or not conversation.has_participant(self.user_id):
            raise NotFound('Conversation not found')
        return conversation

    # Reads

    def list_conversations(self):
        user_id = self.user_id
        conversations = (
            Conversation.query
            .options(
                joinedload(Conversation.property),
                joinedload(Conversation.tenant),
                joinedload(Conversation.owner),
            )
            .filter(or_(Conversation.tenant_id == user_id, Conversation.owner_id == user_id))
            .order_by(Conversation.last_activity.desc(), Conversation.id.desc())
            .all()
        )

        ids = [c.id for c in conversations]
        unread = self._unread_counts(ids, user_id)
        latest = self._latest_messages(ids)

        summaries = [
            self.summarize(c, latest.get(c.id), unread.get(c.id, 0))
            for c in conversations
        ]
        return {
            'conversations': summaries,
            'total_unread': sum(s['unread_count'] for s in summaries),
        }

    def total_unread(self):
        user_id = self.user_id
        return db.session.query(func.count(Message.id)).filter(
            Message.conversation_id.in_(self._participating_ids(user_id)),
            Message.sender_id != user_id,
            Message.read.is_(False),
        ).scalar() or 0

    def unread_messages(self, limit=10):
        """Latest unread messages addressed to the current user"""
        user_id = self.user_id
        messages = (
            Message.query
            .options(
                joinedload(Message.sender),
                joinedload(Message.conversation).joinedload(Conversation.property),
            )
            .filter(
                Message.conversation_id.in_(self._participating_ids(user_id)),
                Message.sender_id != user_id,
                Message.read.is_(False),
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
            .all()
        )

        items = []
        for message in messages:
            data = message.to_dict(include_sender=True)
            data['property_title'] = message.conversation.property.title if message.conversation.property else None
            items.append(data)

        return {'messages': items, 'total_unread': self.total_unread()}

    def select_conversation(self, conversation_id):
        """Full history of a conversation; marks the counterpart's messages read"""
        conversation = self.get_conversation(conversation_id)
        marked = self.mark_read(conversation.id)

        messages = (
            Message.query
            .options(joinedload(Message.sender))
            .filter_by(conversation_id=conversation.id)
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all()
        )
        latest = messages[-1] if messages else None

        return {
            'conversation': self.summarize(conversation, latest, 0),
            'messages': [m.to_dict(include_sender=True) for m in messages],
            'marked_read': marked,
        }

    # Writes

    def mark_read(self, conversation_id):
        """Flip every unread message from the counterpart; returns how many flipped"""
        user_id = self.user_id
        conversation = self.get_conversation(conversation_id)

        try:
            result = db.session.execute(
                update(Message)
                .where(
                    Message.conversation_id == conversation.id,
                    Message.sender_id != user_id,
                    Message.read.is_(False),
                )
                .values(read=True)
                .execution_options(synchronize_session='fetch')
            )
            flipped = result.rowcount or 0
            if flipped:
                change_feed.stage(db.session, ChangeEvent(
                    table='messages',
                    event_type='UPDATE',
                    record={'conversation_id': conversation.id, 'reader_id': user_id, 'read_count': flipped},
                    participants=conversation.participant_ids(),
                ))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f'Failed to mark conversation {conversation.id} read: {str(e)}')
            raise ServiceError('Failed to mark messages as read')

        return flipped

    def send_message(self, conversation_id, body):
        """Insert a message and bump last_activity in one transaction"""
        body = clean_body(body)
        conversation = self.get_conversation(conversation_id)
        message = self._add_message(conversation, body)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f'Failed to send message in conversation {conversation.id}: {str(e)}')
            raise ServiceError('Failed to send message')

        return message

    def start_conversation(self, property_id, first_message=None):
        """Get or create the conversation between the current user and a property's owner"""
        user_id = self.user_id
        body = clean_body(first_message) if first_message is not None else None

        property = db.session.get(Property, property_id)
        if property is None:
            raise NotFound('Property not found')
        if property.is_owned_by(user_id):
            raise ValidationError('You cannot start a conversation about your own property')

        conversation = self._find_conversation(property.id, user_id)
        created = conversation is None
        if created:
            conversation = Conversation(
                property_id=property.id,
                tenant_id=user_id,
                owner_id=property.owner_id,
                last_activity=datetime.utcnow(),
            )
            db.session.add(conversation)

        message = self._add_message(conversation, body) if body else None

        try:
            db.session.commit()
        except IntegrityError:
            # Created concurrently by another request of the same tenant
            db.session.rollback()
            conversation = self._find_conversation(property.id, user_id)
            if conversation is None:
                raise ServiceError('Failed to start conversation')
            created = False
            message = self.send_message(conversation.id, body) if body else None
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f'Failed to start conversation on property {property.id}: {str(e)}')
            raise ServiceError('Failed to start conversation')

        return conversation, message, created

    def subscribe(self, conversation_id=None):
        """Change feed subscription limited to the current user's conversations"""
        user_id = self.user_id
        row_filter = None
        if conversation_id is not None:
            row_filter = {'conversation_id': self.get_conversation(conversation_id).id}

        return change_feed.subscribe(
            'messages',
            row_filter=row_filter,
            predicate=lambda change: user_id in change.participants,
        )

    # Helpers

    def summarize(self, conversation, latest=None, unread_count=0):
        user_id = self.user_id
        counterpart = conversation.counterpart_of(user_id)
        property = conversation.property

        return {
            'id': conversation.id,
            'property_id': conversation.property_id,
            'tenant_id': conversation.tenant_id,
            'owner_id': conversation.owner_id,
            'role': 'tenant' if conversation.tenant_id == user_id else 'owner',
            'last_activity': conversation.last_activity.isoformat() if conversation.last_activity else None,
            'property': {
                'id': property.id,
                'title': property.title,
                'image': property.images[0] if property.images else None,
            } if property else None,
            'counterpart': counterpart.display_info() if counterpart else None,
            'last_message': {
                'body': latest.body,
                'sender_id': latest.sender_id,
                'read': latest.read,
                'created_at': latest.created_at.isoformat() if latest.created_at else None,
            } if latest else None,
            'last_message_preview': latest.body if latest else NO_MESSAGES_PREVIEW,
            'unread_count': unread_count,
        }

    def _add_message(self, conversation, body):
        now = datetime.utcnow()
        message = Message(
            conversation=conversation,
            sender_id=self.user_id,
            body=body,
            read=False,
            created_at=now,
        )
        conversation.touch(now)
        db.session.add(message)
        return message

    @staticmethod
    def _find_conversation(property_id, tenant_id):
        return Conversation.query.filter_by(property_id=property_id, tenant_id=tenant_id).first()

    @staticmethod
    def _participating_ids(user_id):
        return select(Conversation.id).where(
            or_(Conversation.tenant_id == user_id, Conversation.owner_id == user_id)
        )

    @staticmethod
    def _unread_counts(conversation_ids, user_id):
        if not conversation_ids:
            return {}
        rows = (
            db.session.query(Message.conversation_id, func.count(Message.id))
            .filter(
                Message.conversation_id.in_(conversation_ids),
                Message.sender_id != user_id,
                Message.read.is_(False),
            )
            .group_by(Message.conversation_id)
            .all()
        )
        return {conversation_id: count for conversation_id, count in rows}

    @staticmethod
    def _latest_messages(conversation_ids):
        # Ids grow with insertion order, so the highest id is the latest message
        if not conversation_ids:
            return {}
        latest_ids = (
            select(func.max(Message.id))
            .where(Message.conversation_id.in_(conversation_ids))
            .group_by(Message.conversation_id)
        )
        messages = Message.query.filter(Message.id.in_(latest_ids)).all()
        return {m.conversation_id: m for m in messages}
