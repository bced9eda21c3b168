from datetime import datetime
from studenthousing import db


class TokenBlocklist(db.Model):
    """Access tokens revoked by sign-out"""
    __tablename__ = 'token_blocklist'

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @staticmethod
    def is_revoked(jti):
        return db.session.query(TokenBlocklist.id).filter_by(jti=jti).scalar() is not None

    @staticmethod
    def revoke(jti):
        if not TokenBlocklist.is_revoked(jti):
            db.session.add(TokenBlocklist(jti=jti))
        # Caller commits
