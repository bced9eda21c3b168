from datetime import datetime
from studenthousing import db


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)

    # Relationships
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Stay Details
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Status: pending, confirmed, completed, cancelled
    status = db.Column(db.String(20), default='pending', nullable=False, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    property = db.relationship('Property', backref=db.backref('bookings', lazy='dynamic'))
    tenant = db.relationship('User', foreign_keys=[tenant_id])

    def can_transition_to(self, status):
        allowed = {
            'pending': ['confirmed', 'cancelled'],
            'confirmed': ['completed', 'cancelled'],
        }
        return status in allowed.get(self.status, [])

    def confirm(self):
        """Confirm the booking"""
        self.status = 'confirmed'
        self.confirmed_at = datetime.utcnow()

    def complete(self):
        """Mark the stay as completed"""
        self.status = 'completed'
        self.completed_at = datetime.utcnow()

    def cancel(self, user_id):
        """Cancel the booking"""
        self.status = 'cancelled'
        self.cancelled_at = datetime.utcnow()
        self.cancelled_by = user_id

    def to_dict(self, include_property=False, include_tenant=False):
        data = {
            'id': self.id,
            'property_id': self.property_id,
            'tenant_id': self.tenant_id,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'notes': self.notes,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_property and self.property:
            data['property'] = {
                'id': self.property.id,
                'title': self.property.title,
                'location': self.property.location,
                'price': float(self.property.price) if self.property.price is not None else None,
                'image': self.property.images[0] if self.property.images else None,
            }

        if include_tenant and self.tenant:
            data['tenant'] = self.tenant.display_info()

        return data

    def __repr__(self):
        return f'<Booking {self.id}>'
