import pytest
from flask_jwt_extended import create_access_token

from studenthousing import create_app, db
from studenthousing.models import Property, User
from studenthousing.services.cloudinary_service import CloudinaryService
from studenthousing.services.session import SessionContext


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(monkeypatch):
    """Records Cloudinary calls instead of reaching the network"""
    calls = {'uploaded': [], 'deleted': []}

    def fake_upload(self, file, folder='property-images'):
        url = f"https://res.cloudinary.com/demo/image/upload/v1/{folder}/{file.filename.rsplit('.', 1)[0]}.jpg"
        calls['uploaded'].append(url)
        return url

    def fake_delete(self, url):
        calls['deleted'].append(url)
        return True

    monkeypatch.setattr(CloudinaryService, 'upload_image', fake_upload)
    monkeypatch.setattr(CloudinaryService, 'delete_image', fake_delete)
    return calls


def make_user(email, role='tenant', full_name=None):
    user = User(
        email=email,
        role=role,
        full_name=full_name or email.split('@')[0].title(),
        password_hash='unused',
    )
    db.session.add(user)
    db.session.commit()
    return user


def make_property(owner, title='Cozy room near campus', **overrides):
    fields = dict(
        title=title,
        description='Bright room with a desk, five minutes from the university.',
        property_type='shared_room',
        address='12 College Street',
        neighborhood='Centro',
        city='Campinas',
        state='SP',
        price=900,
        amenities=['wifi', 'furnished'],
        images=['https://res.cloudinary.com/demo/image/upload/v1/property-images/room.jpg'],
        available=True,
    )
    fields.update(overrides)
    property = Property(owner_id=owner.id, **fields)
    db.session.add(property)
    db.session.commit()
    return property


def auth_headers(user):
    return {'Authorization': f'Bearer {create_access_token(identity=str(user.id))}'}


def session_for(user):
    return SessionContext.for_user_id(user.id)


@pytest.fixture
def tenant(app):
    return make_user('ana@student.example', role='tenant', full_name='Ana Souza')


@pytest.fixture
def owner(app):
    return make_user('carlos@owner.example', role='owner', full_name='Carlos Lima')


@pytest.fixture
def listing(owner):
    return make_property(owner)
