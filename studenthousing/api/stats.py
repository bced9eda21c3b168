from flask import Blueprint, jsonify, current_app
from sqlalchemy import func
from studenthousing import db
from studenthousing.models.property import Property
from studenthousing.models.user import User

stats_bp = Blueprint('stats', __name__)


def format_count(num):
    """Compact public figure: 999+, 12k+, 1.5M+"""
    if num >= 1000000:
        return f"{num / 1000000:.1f}M+"
    if num >= 1000:
        return f"{num // 1000}k+"
    return f"{num}+"


@stats_bp.route('/', methods=['GET'], strict_slashes=False)
def get_stats():
    """Students, available properties and cities served"""
    try:
        students = User.query.filter_by(role='tenant', is_active=True).count()
        properties = Property.query.filter_by(available=True).count()
        cities = db.session.query(func.count(func.distinct(func.lower(Property.city)))).filter(
            Property.available.is_(True)
        ).scalar() or 0

        return jsonify({
            'students': format_count(students),
            'properties': format_count(properties),
            'cities': format_count(cities),
            'raw': {
                'students': students,
                'properties': properties,
                'cities': cities,
            }
        }), 200

    except Exception as e:
        current_app.logger.error(f'Error fetching stats: {str(e)}')
        return jsonify({'message': 'Failed to fetch stats', 'error': str(e)}), 500
