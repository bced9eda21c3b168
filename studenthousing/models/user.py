from datetime import datetime
from studenthousing import db
import bcrypt

ROLES = ['tenant', 'owner']

MAX_UNIVERSITY_LENGTH = 255


class User(db.Model):
    """A profile; its id is the session identity"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='tenant')  # tenant, owner
    is_active = db.Column(db.Boolean, default=True)

    # Display fields
    full_name = db.Column(db.String(100), nullable=False)
    avatar_url = db.Column(db.String(500), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    university = db.Column(db.String(MAX_UNIVERSITY_LENGTH), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    properties = db.relationship('Property', backref='owner', lazy='dynamic',
                                 foreign_keys='Property.owner_id',
                                 cascade='all, delete-orphan')

    def set_password(self, password):
        """Hash and set user password"""
        salt = bcrypt.gensalt(rounds=12)
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def check_password(self, password):
        """Check if provided password matches hash"""
        if not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))

    def is_owner(self):
        return self.role == 'owner'

    def is_tenant(self):
        return self.role == 'tenant'

    def display_info(self):
        """Name and avatar shown next to messages, reviews and conversations"""
        return {
            'id': self.id,
            'full_name': self.full_name,
            'avatar_url': self.avatar_url,
        }

    def to_dict(self, include_private=False):
        data = {
            'id': self.id,
            'full_name': self.full_name,
            'avatar_url': self.avatar_url,
            'role': self.role,
            'university': self.university,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_private:
            data.update({
                'email': self.email,
                'phone': self.phone,
                'is_active': self.is_active,
                'last_login_at': self.last_login_at.isoformat() if self.last_login_at else None,
            })

        return data

    def __repr__(self):
        return f'<User {self.email}>'
