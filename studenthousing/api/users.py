from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from studenthousing import db
from studenthousing.models.user import User, MAX_UNIVERSITY_LENGTH
from studenthousing.services.cloudinary_service import CloudinaryService, AVATARS_FOLDER
from studenthousing.services.session import current_session
from studenthousing.utils.sanitizers import sanitize_string
from studenthousing.utils.validators import validate_phone, validate_url

users_bp = Blueprint('users', __name__)


@users_bp.route('/profile', methods=['GET'])
@jwt_required()
def get_profile():
    """Get the current user's profile"""
    user = current_session().require_user()
    return jsonify({'user': user.to_dict(include_private=True)}), 200


@users_bp.route('/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    """Update the current user's profile information"""
    user = current_session().require_user()
    try:
        data = request.get_json() or {}

        if 'full_name' in data:
            full_name = sanitize_string(data['full_name'])
            if len(full_name) < 2 or len(full_name) > 100:
                return jsonify({'message': 'Full name must be between 2 and 100 characters'}), 400
            user.full_name = full_name

        if 'phone' in data:
            phone = sanitize_string(data['phone'])
            if phone and not validate_phone(phone):
                return jsonify({'message': 'Invalid phone number format'}), 400
            user.phone = phone or None

        if 'university' in data:
            university = sanitize_string(data['university'])
            if len(university) > MAX_UNIVERSITY_LENGTH:
                return jsonify({'message': f'University cannot exceed {MAX_UNIVERSITY_LENGTH} characters'}), 400
            user.university = university or None

        if 'avatar_url' in data:
            avatar_url = (data['avatar_url'] or '').strip()
            if avatar_url and (len(avatar_url) > 500 or not validate_url(avatar_url)):
                return jsonify({'message': 'Avatar must be a valid URL'}), 400
            user.avatar_url = avatar_url or None

        db.session.commit()
        return jsonify({
            'message': 'Profile updated successfully',
            'user': user.to_dict(include_private=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Profile update failed: {str(e)}')
        return jsonify({'message': 'Failed to update profile', 'error': str(e)}), 500


@users_bp.route('/profile/avatar', methods=['POST'])
@jwt_required()
def upload_avatar():
    """Upload a new avatar image"""
    user = current_session().require_user()
    try:
        avatar = request.files.get('avatar')
        if not avatar or avatar.filename == '':
            return jsonify({'message': 'Avatar file is required'}), 400

        storage = CloudinaryService()
        url = storage.upload_image(avatar, folder=AVATARS_FOLDER)
        if not url:
            return jsonify({'message': 'Failed to upload avatar'}), 502

        previous = user.avatar_url
        user.avatar_url = url
        db.session.commit()

        if previous:
            storage.delete_image(previous)

        return jsonify({
            'message': 'Avatar updated successfully',
            'user': user.to_dict(include_private=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to update avatar', 'error': str(e)}), 500


@users_bp.route('/<int:user_id>', methods=['GET'])
def get_user(user_id):
    """Public profile of a user"""
    user = db.get_or_404(User, user_id)
    if not user.is_active:
        return jsonify({'message': 'User not found'}), 404
    return jsonify({'user': user.to_dict()}), 200
