from studenthousing import db
from datetime import datetime


class Favorite(db.Model):
    __tablename__ = 'favorites'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # A user can only favorite a property once
    __table_args__ = (db.UniqueConstraint('user_id', 'property_id', name='uq_user_property_favorite'),)

    property = db.relationship('Property', backref=db.backref('favorites', lazy='dynamic', cascade='all, delete-orphan'))
    user = db.relationship('User', backref=db.backref('favorites', lazy='dynamic', cascade='all, delete-orphan'))

    def __repr__(self):
        return f'<Favorite user:{self.user_id} property:{self.property_id}>'
