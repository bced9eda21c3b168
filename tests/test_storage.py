import io

import cloudinary.uploader
import pytest

from conftest import auth_headers, make_property
from studenthousing import db
from studenthousing.services.cloudinary_service import CloudinaryService, managed_public_id, public_id_from_url

OUR_IMAGE = 'https://res.cloudinary.com/demo/image/upload/v1712345678/property-images/abc123.jpg'
FOREIGN_IMAGES = [
    'https://attacker.example/upload/property-images/someone-elses-photo',
    'https://res.cloudinary.com/other-cloud/image/upload/v1/property-images/photo.jpg',
    'https://res.cloudinary.com/demo/image/upload/v1/invoices/statement.jpg',
    'http://res.cloudinary.com/demo/image/upload/v1/property-images/photo.jpg',
]


@pytest.fixture
def destroyed(app, monkeypatch):
    """Public ids handed to Cloudinary for deletion"""
    app.config['CLOUDINARY_CLOUD_NAME'] = 'demo'
    calls = []

    def fake_destroy(public_id, **kwargs):
        calls.append(public_id)
        return {'result': 'ok'}

    monkeypatch.setattr(cloudinary.uploader, 'destroy', fake_destroy)
    return calls


@pytest.mark.parametrize('url, expected', [
    (OUR_IMAGE, 'property-images/abc123'),
    ('https://res.cloudinary.com/demo/image/upload/avatars/me.png', 'avatars/me'),
    ('https://example.com/photo.jpg', None),
    (None, None),
])
def test_public_id_from_url(url, expected):
    assert public_id_from_url(url) == expected


def test_managed_public_id_accepts_only_our_folders_on_our_cloud():
    assert managed_public_id(OUR_IMAGE, 'demo') == 'property-images/abc123'
    assert managed_public_id(OUR_IMAGE, None) is None
    for url in FOREIGN_IMAGES:
        assert managed_public_id(url, 'demo') is None


def test_foreign_urls_are_never_destroyed(app, destroyed):
    storage = CloudinaryService()

    for url in FOREIGN_IMAGES:
        assert storage.delete_image(url) is False
    assert destroyed == []

    assert storage.delete_image(OUR_IMAGE) is True
    assert destroyed == ['property-images/abc123']


def test_deleting_listing_keeps_images_it_does_not_own(client, owner, destroyed):
    listing = make_property(owner, images=[FOREIGN_IMAGES[0], OUR_IMAGE])

    assert client.delete(f'/api/properties/{listing.id}', headers=auth_headers(owner)).status_code == 200
    assert destroyed == ['property-images/abc123']


def test_replacing_avatar_keeps_foreign_previous_image(client, tenant, destroyed, monkeypatch):
    monkeypatch.setattr(CloudinaryService, 'upload_image',
                        lambda self, file, folder='avatars': 'https://res.cloudinary.com/demo/image/upload/v2/avatars/new.jpg')
    tenant.avatar_url = 'https://attacker.example/upload/avatars/victim'
    db.session.commit()

    response = client.post('/api/users/profile/avatar', data={'avatar': (io.BytesIO(b'img'), 'me.png')},
                           content_type='multipart/form-data', headers=auth_headers(tenant))

    assert response.status_code == 200
    assert destroyed == []
