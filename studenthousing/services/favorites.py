import logging

from sqlalchemy.exc import SQLAlchemyError

from studenthousing import db
from studenthousing.models.favorite import Favorite
from studenthousing.models.property import Property
from studenthousing.services.errors import NotFound, ServiceError

logger = logging.getLogger(__name__)

ADDED = 'added'
REMOVED = 'removed'


class FavoritesService:
    """The current user's set of favorited properties"""

    def __init__(self, session):
        self.session = session

    def list_ids(self):
        user = self.session.require_user()
        rows = db.session.query(Favorite.property_id).filter_by(user_id=user.id).all()
        return [property_id for (property_id,) in rows]

    def list_properties(self):
        user = self.session.require_user()
        return (
            Property.query
            .join(Favorite, Favorite.property_id == Property.id)
            .filter(Favorite.user_id == user.id)
            .order_by(Favorite.created_at.desc(), Favorite.id.desc())
            .all()
        )

    def is_favorite(self, property_id):
        return property_id in self.list_ids()

    def toggle(self, property_id):
        """Remove the favorite if present, add it otherwise"""
        user = self.session.require_user()
        property = db.session.get(Property, property_id)
        if property is None:
            raise NotFound('Property not found')

        existing = Favorite.query.filter_by(user_id=user.id, property_id=property.id).first()
        try:
            if existing:
                db.session.delete(existing)
                result = REMOVED
            else:
                db.session.add(Favorite(user_id=user.id, property_id=property.id))
                result = ADDED
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f'Failed to toggle favorite {property.id} for user {user.id}: {str(e)}')
            raise ServiceError('Failed to update favorites')

        return result
