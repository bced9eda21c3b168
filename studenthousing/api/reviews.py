from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from studenthousing import db
from studenthousing.models.booking import Booking
from studenthousing.models.property import Property
from studenthousing.models.review import Review
from studenthousing.services.errors import PermissionDenied
from studenthousing.services.session import current_session
from studenthousing.utils.sanitizers import sanitize_string
from studenthousing.utils.validators import parse_int

reviews_bp = Blueprint('reviews', __name__)


def can_review(user_id, property_id):
    """A completed stay entitles a tenant to one review per property"""
    stayed = Booking.query.filter_by(
        tenant_id=user_id, property_id=property_id, status='completed'
    ).first() is not None
    if not stayed:
        return False
    return Review.query.filter_by(user_id=user_id, property_id=property_id).first() is None


@reviews_bp.route('/property/<int:property_id>', methods=['GET'])
def get_property_reviews(property_id):
    """Reviews of a property, newest first"""
    property = db.get_or_404(Property, property_id)
    try:
        reviews = Review.query.filter_by(property_id=property.id).order_by(
            Review.created_at.desc(), Review.id.desc()
        ).all()

        return jsonify({
            'reviews': [r.to_dict() for r in reviews],
            **property.rating_summary(),
        }), 200

    except Exception as e:
        return jsonify({'message': 'Failed to fetch reviews', 'error': str(e)}), 500


@reviews_bp.route('/property/<int:property_id>/eligibility', methods=['GET'])
@jwt_required()
def get_review_eligibility(property_id):
    """Whether the current user may review a property"""
    user = current_session().require_user()
    db.get_or_404(Property, property_id)
    return jsonify({'can_review': can_review(user.id, property_id)}), 200


@reviews_bp.route('/property/<int:property_id>', methods=['POST'])
@jwt_required()
def create_review(property_id):
    """Review a property after a completed stay"""
    user = current_session().require_user()
    property = db.get_or_404(Property, property_id)

    data = request.get_json() or {}
    rating = parse_int(data.get('rating'))
    if rating is None or rating < 1 or rating > 5:
        return jsonify({'message': 'Rating must be an integer between 1 and 5'}), 400

    comment = sanitize_string(data.get('comment', ''))
    if len(comment) > 2000:
        return jsonify({'message': 'Comment cannot exceed 2000 characters'}), 400

    if not can_review(user.id, property.id):
        raise PermissionDenied('Only tenants with a completed stay can review this property')

    try:
        review = Review(
            property_id=property.id,
            user_id=user.id,
            rating=rating,
            comment=comment or None
        )
        db.session.add(review)
        db.session.commit()

        return jsonify({
            'message': 'Review submitted successfully',
            'review': review.to_dict()
        }), 201

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to submit review', 'error': str(e)}), 500
