from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt_identity
from studenthousing import db
from studenthousing.models.user import User


def _current_user():
    identity = get_jwt_identity()
    return db.session.get(User, int(identity)) if identity is not None else None


def owner_required(fn):
    """Decorator to require the owner role"""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _current_user()

        if not user:
            return jsonify({'message': 'User not found'}), 404

        if not user.is_owner():
            return jsonify({'message': 'Owner access required'}), 403

        return fn(*args, **kwargs)
    return wrapper


def tenant_required(fn):
    """Decorator to require the tenant role"""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _current_user()

        if not user:
            return jsonify({'message': 'User not found'}), 404

        if not user.is_tenant():
            return jsonify({'message': 'Tenant access required'}), 403

        return fn(*args, **kwargs)
    return wrapper
