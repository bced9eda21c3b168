import io

from conftest import auth_headers, make_user
from studenthousing import db


def register(client, **overrides):
    payload = {
        'email': 'Lucia@Unicamp.br',
        'password': 'correct-horse',
        'full_name': 'Lucia Prado',
        'role': 'tenant',
    }
    payload.update(overrides)
    return client.post('/api/auth/register', json=payload)


def test_register_and_login(client):
    response = register(client)
    assert response.status_code == 201
    assert response.get_json()['user']['email'] == 'lucia@unicamp.br'

    response = client.post('/api/auth/login', json={'email': 'lucia@unicamp.br', 'password': 'correct-horse'})
    assert response.status_code == 200
    token = response.get_json()['token']

    response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert response.get_json()['user']['full_name'] == 'Lucia Prado'


def test_register_rejects_bad_input(client):
    assert register(client, role='admin').status_code == 400
    assert register(client, password='short').status_code == 400
    assert register(client, email='not-an-email').status_code == 400
    assert register(client).status_code == 201
    assert register(client).status_code == 409


def test_login_with_wrong_password(client):
    register(client)
    response = client.post('/api/auth/login', json={'email': 'lucia@unicamp.br', 'password': 'wrong-password'})
    assert response.status_code == 401


def test_logout_revokes_token(client):
    token = register(client).get_json()['token']
    headers = {'Authorization': f'Bearer {token}'}

    assert client.post('/api/auth/logout', headers=headers).status_code == 200
    response = client.get('/api/auth/me', headers=headers)
    assert response.status_code == 401
    assert response.get_json()['message'] == 'Token has been revoked'


def test_token_accepted_from_query_string(client, tenant):
    token = auth_headers(tenant)['Authorization'].split(' ', 1)[1]
    assert client.get(f'/api/auth/me?jwt={token}').status_code == 200


def test_missing_token_is_unauthorized(client):
    response = client.get('/api/users/profile')
    assert response.status_code == 401
    assert response.get_json()['message'] == 'Authentication required'


def test_deactivated_user_is_treated_as_signed_out(client, tenant):
    tenant.is_active = False
    db.session.commit()
    assert client.get('/api/users/profile', headers=auth_headers(tenant)).status_code == 401


def test_update_profile(client, tenant):
    response = client.put('/api/users/profile', json={
        'full_name': 'Ana Maria Souza',
        'phone': '+55 (19) 99999-0000',
        'university': 'Unicamp',
    }, headers=auth_headers(tenant))
    assert response.status_code == 200
    assert response.get_json()['user']['university'] == 'Unicamp'

    assert client.put('/api/users/profile', json={'full_name': 'A'},
                      headers=auth_headers(tenant)).status_code == 400
    assert client.put('/api/users/profile', json={'avatar_url': 'ftp://nope'},
                      headers=auth_headers(tenant)).status_code == 400


def test_avatar_upload_replaces_previous_image(client, tenant, storage):
    tenant.avatar_url = 'https://res.cloudinary.com/demo/image/upload/v1/avatars/old.jpg'
    db.session.commit()

    response = client.post('/api/users/profile/avatar', data={'avatar': (io.BytesIO(b'img'), 'me.png')},
                           content_type='multipart/form-data', headers=auth_headers(tenant))

    assert response.status_code == 200
    assert response.get_json()['user']['avatar_url'] == storage['uploaded'][0]
    assert storage['deleted'] == ['https://res.cloudinary.com/demo/image/upload/v1/avatars/old.jpg']


def test_public_profile_hides_private_fields(client):
    user = make_user('paulo@student.example')
    body = client.get(f'/api/users/{user.id}').get_json()['user']
    assert body['full_name'] == 'Paulo'
    assert 'email' not in body


def test_register_validates_optional_profile_fields(client):
    assert register(client, phone='call me maybe').status_code == 400
    assert register(client, phone='+55 ' + '9 ' * 20).status_code == 400
    assert register(client, university='U' * 256).status_code == 400

    response = register(client, phone='+55 19 99999-0000', university='Unicamp')
    assert response.status_code == 201
    assert response.get_json()['user']['phone'] == '+55 19 99999-0000'


def test_update_profile_caps_field_lengths(client, tenant):
    headers = auth_headers(tenant)
    assert client.put('/api/users/profile', json={'university': 'U' * 256}, headers=headers).status_code == 400
    assert client.put('/api/users/profile', json={'avatar_url': 'https://example.com/' + 'a' * 500},
                      headers=headers).status_code == 400
