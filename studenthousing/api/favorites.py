from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from studenthousing.services.favorites import FavoritesService, ADDED
from studenthousing.services.listing_filter import Listing
from studenthousing.services.session import current_session

favorites_bp = Blueprint('favorites', __name__)


@favorites_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
def get_favorites():
    """The current user's favorite properties"""
    favorites = FavoritesService(current_session())
    properties = favorites.list_properties()

    return jsonify({
        'property_ids': [p.id for p in properties],
        'properties': [Listing.from_record(p).to_dict() for p in properties],
    }), 200


@favorites_bp.route('/ids', methods=['GET'])
@jwt_required()
def get_favorite_ids():
    """Favorite property ids, for heart toggles on listing cards"""
    favorites = FavoritesService(current_session())
    return jsonify({'property_ids': favorites.list_ids()}), 200


@favorites_bp.route('/<int:property_id>', methods=['POST'])
@jwt_required()
def toggle_favorite(property_id):
    """Add or remove a property from the current user's favorites"""
    favorites = FavoritesService(current_session())
    result = favorites.toggle(property_id)

    return jsonify({
        'message': 'Added to favorites' if result == ADDED else 'Removed from favorites',
        'result': result,
        'favorited': result == ADDED,
    }), 200
