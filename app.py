#!/usr/bin/env python3
"""
Student Housing Backend Application Runner
"""
import os
from studenthousing import create_app, db
from studenthousing.models import User, Property, Favorite, Conversation, Message, Review, Booking

app = create_app()

@app.shell_context_processor
def make_shell_context():
    return {
        'db': db,
        'User': User,
        'Property': Property,
        'Favorite': Favorite,
        'Conversation': Conversation,
        'Message': Message,
        'Review': Review,
        'Booking': Booking
    }

if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV') == 'development'
    app.run(host='0.0.0.0', port=port, debug=debug, threaded=True)
