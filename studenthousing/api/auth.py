from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt
from studenthousing import db, limiter
from studenthousing.models.user import User, ROLES, MAX_UNIVERSITY_LENGTH
from studenthousing.models.token_blocklist import TokenBlocklist
from studenthousing.services.session import current_session
from studenthousing.utils.validators import validate_email, validate_password, validate_phone
from studenthousing.utils.sanitizers import sanitize_string

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("10 per hour")
def register():
    """Register a new user"""
    try:
        data = request.get_json() or {}

        # Sanitize inputs
        email = sanitize_string(data.get('email', '')).lower().strip()
        password = data.get('password', '')
        full_name = sanitize_string(data.get('full_name', '')).strip()
        role = data.get('role', 'tenant')
        phone = sanitize_string(data.get('phone', ''))
        university = sanitize_string(data.get('university', ''))

        # Validation
        if not email or not password or not full_name:
            return jsonify({'message': 'Email, password and full name are required'}), 400

        if not validate_email(email):
            return jsonify({'message': 'Invalid email format'}), 400

        if not validate_password(password):
            return jsonify({'message': 'Password must be at least 8 characters long'}), 400

        if len(full_name) < 2 or len(full_name) > 100:
            return jsonify({'message': 'Full name must be between 2 and 100 characters'}), 400

        if role not in ROLES:
            return jsonify({'message': 'Role must be tenant or owner'}), 400

        if phone and not validate_phone(phone):
            return jsonify({'message': 'Invalid phone number format'}), 400

        if len(university) > MAX_UNIVERSITY_LENGTH:
            return jsonify({'message': f'University cannot exceed {MAX_UNIVERSITY_LENGTH} characters'}), 400

        # Check if email exists
        if User.query.filter_by(email=email).first():
            return jsonify({'message': 'Email already registered'}), 409

        user = User(
            email=email,
            full_name=full_name,
            role=role,
            phone=phone or None,
            university=university or None,
        )
        user.set_password(password)

        db.session.add(user)
        db.session.commit()

        access_token = create_access_token(identity=str(user.id))

        return jsonify({
            'message': 'Registration successful',
            'token': access_token,
            'user': user.to_dict(include_private=True)
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Registration failed: {str(e)}')
        return jsonify({'message': 'Registration failed', 'error': str(e)}), 500


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("20 per hour")
def login():
    """Login user"""
    try:
        data = request.get_json() or {}

        email = sanitize_string(data.get('email', '')).lower().strip()
        password = data.get('password', '')

        if not email or not password:
            return jsonify({'message': 'Email and password are required'}), 400

        # Find user
        user = User.query.filter_by(email=email).first()

        if not user or not user.check_password(password):
            return jsonify({'message': 'Invalid email or password'}), 401

        if not user.is_active:
            return jsonify({'message': 'Account is deactivated'}), 403

        # Update last login
        user.last_login_at = datetime.utcnow()
        db.session.commit()

        # Generate token
        access_token = create_access_token(identity=str(user.id))

        return jsonify({
            'message': 'Login successful',
            'token': access_token,
            'user': user.to_dict(include_private=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Login failed: {str(e)}')
        return jsonify({'message': 'Login failed', 'error': str(e)}), 500


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """Revoke the current access token"""
    try:
        TokenBlocklist.revoke(get_jwt()['jti'])
        db.session.commit()
        return jsonify({'message': 'Signed out successfully'}), 200

    except Exception as e:
        db.session.rollback()
        return jsonify({'message': 'Failed to sign out', 'error': str(e)}), 500


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    """Get the signed-in user"""
    session = current_session()
    if not session.is_authenticated:
        return jsonify({'message': 'User not found'}), 404

    return jsonify({'user': session.user.to_dict(include_private=True)}), 200
