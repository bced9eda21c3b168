from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from studenthousing import db
from studenthousing.models.user import User
from studenthousing.services.errors import AuthenticationRequired


class SessionContext:
    """Identity of the caller, handed explicitly to services that need it.

    A context is built once per request from the verified JWT and never
    mutated afterwards; sign-in issues a new token and sign-out revokes it,
    so the next request simply builds a different context.
    """

    def __init__(self, user=None):
        self._user = user

    @classmethod
    def anonymous(cls):
        return cls(None)

    @classmethod
    def for_user_id(cls, user_id):
        user = db.session.get(User, int(user_id)) if user_id is not None else None
        if user is not None and not user.is_active:
            user = None
        return cls(user)

    @classmethod
    def from_request(cls, optional=False):
        """Build a context from the JWT of the current request"""
        verify_jwt_in_request(optional=optional)
        return cls.for_user_id(get_jwt_identity())

    @property
    def user(self):
        return self._user

    @property
    def user_id(self):
        return self._user.id if self._user else None

    @property
    def is_authenticated(self):
        return self._user is not None

    def require_user(self):
        if self._user is None:
            raise AuthenticationRequired('Sign in to continue')
        return self._user

    def __repr__(self):
        return f'<SessionContext user={self.user_id}>'


def current_session(optional=False):
    return SessionContext.from_request(optional=optional)
