from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import or_
from studenthousing import db
from studenthousing.models.booking import Booking
from studenthousing.models.property import Property
from studenthousing.services.errors import PermissionDenied
from studenthousing.services.session import current_session
from studenthousing.utils.decorators import tenant_required
from studenthousing.utils.sanitizers import sanitize_string
from studenthousing.utils.validators import parse_int

bookings_bp = Blueprint('bookings', __name__)


def _parse_date(value):
    if not value:
        return None
    try:
        return datetime.strptime(str(value).split('T')[0], '%Y-%m-%d').date()
    except ValueError:
        return None


@bookings_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
def get_bookings():
    """Bookings where the current user is the tenant or the property owner"""
    user = current_session().require_user()
    try:
        bookings = Booking.query.join(Property).filter(
            or_(Booking.tenant_id == user.id, Property.owner_id == user.id)
        ).order_by(Booking.created_at.desc(), Booking.id.desc()).all()

        return jsonify({
            'bookings': [
                b.to_dict(include_property=True, include_tenant=b.property.owner_id == user.id)
                for b in bookings
            ]
        }), 200

    except Exception as e:
        return jsonify({'message': 'Failed to fetch bookings', 'error': str(e)}), 500


@bookings_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@tenant_required
def create_booking():
    """Request a stay at a property"""
    user = current_session().require_user()
    data = request.get_json() or {}

    property_id = parse_int(data.get('property_id'))
    start_date = _parse_date(data.get('start_date'))
    end_date = _parse_date(data.get('end_date'))

    # Validation
    if not property_id or not start_date:
        return jsonify({'message': 'Property and start date are required'}), 400

    if data.get('end_date') and not end_date:
        return jsonify({'message': 'Invalid end date'}), 400

    if end_date and end_date < start_date:
        return jsonify({'message': 'End date must be after start date'}), 400

    property = db.session.get(Property, property_id)
    if not property:
        return jsonify({'message': 'Property not found'}), 404

    if not property.available:
        return jsonify({'message': 'Property is not available'}), 400

    try:
        booking = Booking(
            property_id=property.id,
            tenant_id=user.id,
            start_date=start_date,
            end_date=end_date,
            notes=sanitize_string(data.get('notes', '')) or None,
            status='pending'
        )
        db.session.add(booking)
        db.session.commit()

        return jsonify({
            'message': 'Booking requested successfully',
            'booking': booking.to_dict(include_property=True)
        }), 201

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to request booking', 'error': str(e)}), 500


def _transition(booking_id, status, owner_only=True):
    user = current_session().require_user()
    booking = db.get_or_404(Booking, booking_id)

    is_owner = booking.property.owner_id == user.id
    is_tenant = booking.tenant_id == user.id
    if not (is_owner or (is_tenant and not owner_only)):
        raise PermissionDenied('Permission denied')

    if not booking.can_transition_to(status):
        return jsonify({'message': f'Cannot change a {booking.status} booking to {status}'}), 400

    try:
        if status == 'confirmed':
            booking.confirm()
        elif status == 'completed':
            booking.complete()
        elif status == 'cancelled':
            booking.cancel(user.id)
        db.session.commit()

        return jsonify({
            'message': f'Booking {status}',
            'booking': booking.to_dict(include_property=True, include_tenant=is_owner)
        }), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to update booking', 'error': str(e)}), 500


@bookings_bp.route('/<int:booking_id>/confirm', methods=['POST'])
@jwt_required()
def confirm_booking(booking_id):
    """Confirm a booking (property owner only)"""
    return _transition(booking_id, 'confirmed')


@bookings_bp.route('/<int:booking_id>/complete', methods=['POST'])
@jwt_required()
def complete_booking(booking_id):
    """Mark a stay as completed (property owner only)"""
    return _transition(booking_id, 'completed')


@bookings_bp.route('/<int:booking_id>/cancel', methods=['POST'])
@jwt_required()
def cancel_booking(booking_id):
    """Cancel a booking (tenant or property owner)"""
    return _transition(booking_id, 'cancelled', owner_only=False)
