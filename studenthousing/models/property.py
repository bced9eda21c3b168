from datetime import datetime
from studenthousing import db

PROPERTY_TYPES = ['house', 'apartment', 'studio', 'shared_room']

AMENITIES = [
    'wifi', 'furnished', 'air_conditioning', 'pets_allowed', 'pool',
    'security', 'gym', 'parking', 'elevator', 'grill',
]


class Property(db.Model):
    __tablename__ = 'properties'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)

    # Property Type & Location
    property_type = db.Column(db.String(50), nullable=False)  # house, apartment, studio, shared_room
    address = db.Column(db.String(500), nullable=False)
    neighborhood = db.Column(db.String(150), nullable=False)
    city = db.Column(db.String(100), nullable=False, index=True)
    state = db.Column(db.String(50), nullable=False)

    # Pricing
    price = db.Column(db.Numeric(12, 2), nullable=False)

    # Details
    bedrooms = db.Column(db.Integer, nullable=False, default=1)
    bathrooms = db.Column(db.Integer, nullable=False, default=1)
    max_occupants = db.Column(db.Integer, nullable=False, default=1)
    available_spots = db.Column(db.Integer, nullable=False, default=1)

    # Amenities (stored as JSON array of amenity ids)
    amenities = db.Column(db.JSON, default=list)

    # Images (stored as JSON array of public URLs)
    images = db.Column(db.JSON, default=list)

    available = db.Column(db.Boolean, default=True, nullable=False, index=True)

    # Statistics
    view_count = db.Column(db.Integer, default=0)

    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_owned_by(self, user_id):
        return self.owner_id == user_id

    def toggle_availability(self):
        self.available = not self.available
        return self.available

    def increment_views(self):
        """Increment view counter"""
        self.view_count = (self.view_count or 0) + 1

    @property
    def location(self):
        return f"{self.neighborhood}, {self.city} - {self.state}"

    def rating_summary(self):
        """Average rating and review count"""
        from studenthousing.models.review import Review

        average, count = db.session.query(
            db.func.avg(Review.rating), db.func.count(Review.id)
        ).filter(Review.property_id == self.id).one()
        return {
            'rating': round(float(average), 1) if average is not None else None,
            'review_count': count,
        }

    def to_dict(self, include_owner=False, include_rating=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'property_type': self.property_type,
            'address': self.address,
            'neighborhood': self.neighborhood,
            'city': self.city,
            'state': self.state,
            'location': self.location,
            'price': float(self.price) if self.price is not None else None,
            'bedrooms': self.bedrooms,
            'bathrooms': self.bathrooms,
            'max_occupants': self.max_occupants,
            'available_spots': self.available_spots,
            'amenities': self.amenities or [],
            'images': self.images or [],
            'available': self.available,
            'view_count': self.view_count,
            'owner_id': self.owner_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_owner and self.owner:
            data['owner'] = self.owner.display_info()
            data['owner']['phone'] = self.owner.phone

        if include_rating:
            data.update(self.rating_summary())

        return data

    def __repr__(self):
        return f'<Property {self.title}>'
