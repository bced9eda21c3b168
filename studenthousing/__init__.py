from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_talisman import Talisman
import cloudinary
import logging
from werkzeug.middleware.proxy_fix import ProxyFix

from studenthousing.config import get_config

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"]
)


def create_app(config_name=None):
    app = Flask(__name__)

    # Trust reverse proxy headers
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # Configuration
    app.config.from_object(get_config(config_name))

    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    # Cloudinary configuration
    cloudinary.config(
        cloud_name=app.config['CLOUDINARY_CLOUD_NAME'],
        api_key=app.config['CLOUDINARY_API_KEY'],
        api_secret=app.config['CLOUDINARY_API_SECRET']
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # CORS configuration
    CORS(app, resources={
        r"/api/*": {
            "origins": app.config['FRONTEND_URL'].split(','),
            "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"]
        }
    })

    # Security headers (only in production)
    if app.config['FORCE_HTTPS']:
        Talisman(
            app,
            force_https=True,
            content_security_policy=None
        )

    from studenthousing.models import TokenBlocklist

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return TokenBlocklist.is_revoked(jwt_payload['jti'])

    @jwt.unauthorized_loader
    def missing_token_callback(reason):
        return jsonify({'message': 'Authentication required', 'error': reason}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(reason):
        return jsonify({'message': 'Invalid token', 'error': reason}), 401

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header, jwt_payload):
        return jsonify({'message': 'Token has been revoked'}), 401

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({'message': 'Token has expired'}), 401

    # Register blueprints
    from studenthousing.api.auth import auth_bp
    from studenthousing.api.users import users_bp
    from studenthousing.api.properties import properties_bp
    from studenthousing.api.favorites import favorites_bp
    from studenthousing.api.conversations import conversations_bp
    from studenthousing.api.reviews import reviews_bp
    from studenthousing.api.bookings import bookings_bp
    from studenthousing.api.stats import stats_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(properties_bp, url_prefix='/api/properties')
    app.register_blueprint(favorites_bp, url_prefix='/api/favorites')
    app.register_blueprint(conversations_bp, url_prefix='/api/conversations')
    app.register_blueprint(reviews_bp, url_prefix='/api/reviews')
    app.register_blueprint(bookings_bp, url_prefix='/api/bookings')
    app.register_blueprint(stats_bp, url_prefix='/api/stats')

    # Publish message changes to realtime subscribers after each commit
    from studenthousing.services.change_feed import register_session_hooks
    register_session_hooks()

    # Error handlers
    from studenthousing.services.errors import ServiceError

    @app.errorhandler(ServiceError)
    def service_error_handler(e):
        db.session.rollback()
        return e.to_response()

    @app.errorhandler(404)
    def not_found_handler(e):
        return {'message': 'Resource not found'}, 404

    @app.errorhandler(429)
    def ratelimit_handler(e):
        return {'message': 'Rate limit exceeded. Please try again later.'}, 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return {'message': 'Internal server error'}, 500

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'studenthousing-api'}, 200

    # Create tables
    with app.app_context():
        db.create_all()

    return app
