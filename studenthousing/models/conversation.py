from studenthousing import db
from datetime import datetime


class Conversation(db.Model):
    """Thread between one tenant and one owner about one property"""
    __tablename__ = 'conversations'

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    last_activity = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # One conversation per tenant and property
    __table_args__ = (db.UniqueConstraint('property_id', 'tenant_id', name='uq_conversation_property_tenant'),)

    # Relationships
    property = db.relationship('Property', backref=db.backref('conversations', lazy='dynamic'))
    tenant = db.relationship('User', foreign_keys=[tenant_id])
    owner = db.relationship('User', foreign_keys=[owner_id])
    messages = db.relationship('Message', backref='conversation', lazy='dynamic',
                               cascade='all, delete-orphan', order_by='Message.id')

    def participant_ids(self):
        return (self.tenant_id, self.owner_id)

    def has_participant(self, user_id):
        return user_id in self.participant_ids()

    def counterpart_of(self, user_id):
        """The other participant of the conversation"""
        return self.owner if user_id == self.tenant_id else self.tenant

    def touch(self, when=None):
        self.last_activity = when or datetime.utcnow()

    def __repr__(self):
        return f'<Conversation {self.id}>'


class Message(db.Model):
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey('conversations.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    body = db.Column(db.Text, nullable=False)

    # Flipped to True only by the participant who did not send it
    read = db.Column(db.Boolean, default=False, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    sender = db.relationship('User', foreign_keys=[sender_id])

    def to_dict(self, include_sender=False):
        data = {
            'id': self.id,
            'conversation_id': self.conversation_id,
            'sender_id': self.sender_id,
            'body': self.body,
            'read': self.read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_sender and self.sender:
            data['sender'] = self.sender.display_info()

        return data

    def __repr__(self):
        return f'<Message {self.id}>'
