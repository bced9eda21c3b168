import json
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from studenthousing import db
from studenthousing.models.booking import Booking
from studenthousing.models.conversation import Conversation
from studenthousing.models.property import Property, PROPERTY_TYPES, AMENITIES
from studenthousing.models.review import Review
from studenthousing.services.cloudinary_service import CloudinaryService, PROPERTY_IMAGES_FOLDER
from studenthousing.services.listing_filter import Listing, ListingFilter, apply_filters
from studenthousing.services.messaging import MessagingService
from studenthousing.services.errors import Conflict, PermissionDenied
from studenthousing.services.session import current_session
from studenthousing.utils.decorators import owner_required
from studenthousing.utils.sanitizers import sanitize_string
from studenthousing.utils.validators import parse_float, parse_int, validate_url

properties_bp = Blueprint('properties', __name__)

REQUIRED_FIELDS = ['title', 'property_type', 'price', 'address', 'neighborhood', 'city', 'state', 'description']


def _request_data():
    """JSON body, or form fields with stringified lists parsed"""
    if request.is_json:
        return request.get_json() or {}

    data = request.form.to_dict()
    for field in ['amenities', 'images']:
        if field in data and isinstance(data[field], str):
            try:
                data[field] = json.loads(data[field])
            except json.JSONDecodeError:
                data[field] = [v.strip() for v in data[field].split(',') if v.strip()]
    return data


def _validate_property_fields(data, partial=False):
    """Return (cleaned fields, error message)"""
    cleaned = {}

    if not partial:
        missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, '')]
        if missing:
            return None, f"Missing required fields: {', '.join(missing)}"

    if 'title' in data:
        title = sanitize_string(data['title'])
        if len(title) < 5 or len(title) > 100:
            return None, 'Title must be between 5 and 100 characters'
        cleaned['title'] = title

    if 'description' in data:
        description = sanitize_string(data['description'])
        if len(description) < 20 or len(description) > 1000:
            return None, 'Description must be between 20 and 1000 characters'
        cleaned['description'] = description

    if 'property_type' in data:
        if data['property_type'] not in PROPERTY_TYPES:
            return None, f"Property type must be one of: {', '.join(PROPERTY_TYPES)}"
        cleaned['property_type'] = data['property_type']

    if 'price' in data:
        price = parse_float(data['price'])
        if price is None or price <= 0:
            return None, 'Price must be a positive number'
        cleaned['price'] = price

    for field in ['address', 'neighborhood', 'city']:
        if field in data:
            value = sanitize_string(data[field])
            if len(value) < 2:
                return None, f'{field.capitalize()} is required'
            cleaned[field] = value

    if 'state' in data:
        state = sanitize_string(data['state']).upper()
        if len(state) != 2:
            return None, 'State must be a two-letter code'
        cleaned['state'] = state

    for field in ['bedrooms', 'bathrooms', 'max_occupants', 'available_spots']:
        if field in data:
            value = parse_int(data[field])
            if value is None or value < 0:
                return None, f'{field.replace("_", " ").capitalize()} must be a non-negative integer'
            cleaned[field] = value

    if 'amenities' in data:
        amenities = data['amenities'] or []
        if not isinstance(amenities, list):
            return None, 'Amenities must be a list'
        unknown = [a for a in amenities if a not in AMENITIES]
        if unknown:
            return None, f"Unknown amenities: {', '.join(map(str, unknown))}"
        cleaned['amenities'] = list(dict.fromkeys(amenities))

    if 'images' in data:
        images = data['images'] or []
        if not isinstance(images, list) or not all(validate_url(i) for i in images):
            return None, 'Images must be a list of URLs'
        cleaned['images'] = images

    return cleaned, None


@properties_bp.route('/', methods=['GET'], strict_slashes=False)
def get_properties():
    """Available properties matching the search filters"""
    try:
        criteria = ListingFilter.from_args(request.args)

        records = Property.query.filter_by(available=True).order_by(Property.created_at.desc(), Property.id.desc()).all()
        batch = [Listing.from_record(r) for r in records]
        results = apply_filters(batch, criteria)

        return jsonify({
            'properties': [l.to_dict() for l in results],
            'count': len(results),
            'filters': criteria.to_dict(),
        }), 200

    except Exception as e:
        current_app.logger.error(f'Failed to fetch properties: {str(e)}')
        return jsonify({'message': 'Failed to fetch properties', 'error': str(e)}), 500


@properties_bp.route('/options', methods=['GET'])
def get_property_options():
    """Property types, amenities and quick filters accepted by the API"""
    from studenthousing.services.listing_filter import QUICK_FILTERS

    return jsonify({
        'property_types': PROPERTY_TYPES,
        'amenities': AMENITIES,
        'quick_filters': {name: list(amenities) for name, amenities in QUICK_FILTERS.items()},
    }), 200


@properties_bp.route('/<int:property_id>', methods=['GET'])
def get_property(property_id):
    """Get a single property by ID"""
    property = db.get_or_404(Property, property_id)
    try:
        # Increment view count
        property.increment_views()
        db.session.commit()

        return jsonify({'property': property.to_dict(include_owner=True, include_rating=True)}), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to fetch property', 'error': str(e)}), 500


@properties_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@owner_required
def create_property():
    """Create a new property listing"""
    user = current_session().require_user()
    try:
        data = _request_data()
        fields, error = _validate_property_fields(data)
        if error:
            return jsonify({'message': error}), 400

        # Handle Property Image Uploads
        image_files = [f for f in request.files.getlist('images') if f.filename != '']
        images = fields.pop('images', [])
        if not image_files and not images:
            return jsonify({'message': 'At least one image is required'}), 400

        storage = CloudinaryService()
        uploaded = []
        for image_file in image_files:
            url = storage.upload_image(image_file, folder=PROPERTY_IMAGES_FOLDER)
            if not url:
                # Do not leave orphaned uploads behind
                for orphan in uploaded:
                    storage.delete_image(orphan)
                return jsonify({'message': f'Failed to upload image {image_file.filename}'}), 502
            uploaded.append(url)
        images = images + uploaded

        property = Property(owner_id=user.id, images=images, available=True, **fields)
        db.session.add(property)
        db.session.commit()

        current_app.logger.info(f'Property {property.id} created by owner {user.id}')

        return jsonify({
            'message': 'Property created successfully',
            'property': property.to_dict()
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to create property: {str(e)}')
        return jsonify({'message': 'Failed to create property', 'error': str(e)}), 500


@properties_bp.route('/<int:property_id>', methods=['PUT'])
@jwt_required()
def update_property(property_id):
    """Update a property listing"""
    user = current_session().require_user()
    property = db.get_or_404(Property, property_id)

    # Check permissions
    if not property.is_owned_by(user.id):
        raise PermissionDenied('Permission denied')

    try:
        data = request.get_json() or {}
        fields, error = _validate_property_fields(data, partial=True)
        if error:
            return jsonify({'message': error}), 400

        if 'images' in fields and not fields['images']:
            return jsonify({'message': 'At least one image is required'}), 400

        for name, value in fields.items():
            setattr(property, name, value)

        db.session.commit()

        return jsonify({
            'message': 'Property updated successfully',
            'property': property.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to update property', 'error': str(e)}), 500


@properties_bp.route('/<int:property_id>/availability', methods=['POST'])
@jwt_required()
def toggle_availability(property_id):
    """Toggle whether a property is listed as available"""
    user = current_session().require_user()
    property = db.get_or_404(Property, property_id)

    if not property.is_owned_by(user.id):
        raise PermissionDenied('Permission denied')

    try:
        available = property.toggle_availability()
        db.session.commit()

        return jsonify({
            'message': 'Property is now available' if available else 'Property is now unavailable',
            'property': property.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to update availability', 'error': str(e)}), 500


@properties_bp.route('/<int:property_id>', methods=['DELETE'])
@jwt_required()
def delete_property(property_id):
    """Delete a property listing and its stored images"""
    user = current_session().require_user()
    property = db.get_or_404(Property, property_id)

    # Check permissions
    if not property.is_owned_by(user.id):
        raise PermissionDenied('Permission denied')

    # Conversations and bookings outlive the listing
    if property.conversations.count() or property.bookings.count():
        raise Conflict('This property has conversations or bookings; mark it unavailable instead')

    try:
        images = list(property.images or [])

        db.session.delete(property)
        db.session.commit()

        storage = CloudinaryService()
        for url in images:
            storage.delete_image(url)

        return jsonify({'message': 'Property deleted successfully'}), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to delete property', 'error': str(e)}), 500


@properties_bp.route('/my-properties', methods=['GET'])
@jwt_required()
@owner_required
def get_my_properties():
    """Get properties for the current owner with their stats"""
    user = current_session().require_user()
    try:
        properties = Property.query.filter_by(owner_id=user.id).order_by(Property.created_at.desc(), Property.id.desc()).all()
        ids = [p.id for p in properties]

        conversation_counts = dict(
            db.session.query(Conversation.property_id, func.count(Conversation.id))
            .filter(Conversation.property_id.in_(ids))
            .group_by(Conversation.property_id)
            .all()
        ) if ids else {}
        ratings = {
            property_id: (average, count)
            for property_id, average, count in db.session.query(
                Review.property_id, func.avg(Review.rating), func.count(Review.id)
            ).filter(Review.property_id.in_(ids)).group_by(Review.property_id).all()
        } if ids else {}

        results = []
        for p in properties:
            data = p.to_dict()
            average, count = ratings.get(p.id, (None, 0))
            data['stats'] = {
                'views': p.view_count or 0,
                'inquiries': conversation_counts.get(p.id, 0),
                'rating': round(float(average), 1) if average is not None else None,
                'review_count': count,
            }
            results.append(data)

        return jsonify({'properties': results}), 200

    except Exception as e:
        return jsonify({'message': 'Failed to fetch properties', 'error': str(e)}), 500


@properties_bp.route('/dashboard', methods=['GET'])
@jwt_required()
@owner_required
def get_owner_dashboard():
    """Summary numbers for the owner's property management dashboard"""
    session = current_session()
    user = session.require_user()
    try:
        owned = Property.query.filter_by(owner_id=user.id)

        active_properties = owned.filter_by(available=True).count()
        total_properties = owned.count()
        total_views = db.session.query(func.coalesce(func.sum(Property.view_count), 0)).filter(
            Property.owner_id == user.id
        ).scalar()
        conversations = Conversation.query.filter_by(owner_id=user.id).count()
        pending_bookings = Booking.query.join(Property).filter(
            Property.owner_id == user.id, Booking.status == 'pending'
        ).count()
        average_rating = db.session.query(func.avg(Review.rating)).join(Property).filter(
            Property.owner_id == user.id
        ).scalar()

        return jsonify({
            'summary': {
                'total_properties': total_properties,
                'active_properties': active_properties,
                'total_views': int(total_views or 0),
                'conversations': conversations,
                'unread_messages': MessagingService(session).total_unread(),
                'pending_bookings': pending_bookings,
                'average_rating': round(float(average_rating), 1) if average_rating is not None else None,
            }
        }), 200

    except Exception as e:
        return jsonify({'message': 'Failed to load dashboard', 'error': str(e)}), 500
