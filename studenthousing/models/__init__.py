from .user import User
from .property import Property
from .favorite import Favorite
from .conversation import Conversation, Message
from .review import Review
from .booking import Booking
from .token_blocklist import TokenBlocklist

__all__ = ['User', 'Property', 'Favorite', 'Conversation', 'Message', 'Review', 'Booking', 'TokenBlocklist']
