from datetime import date

from conftest import auth_headers, make_user
from studenthousing import db
from studenthousing.models import Booking


def request_booking(client, tenant, listing, **overrides):
    payload = {'property_id': listing.id, 'start_date': '2026-02-01', 'end_date': '2026-07-31'}
    payload.update(overrides)
    return client.post('/api/bookings', json=payload, headers=auth_headers(tenant))


def test_booking_lifecycle(client, tenant, owner, listing):
    response = request_booking(client, tenant, listing)
    assert response.status_code == 201
    booking_id = response.get_json()['booking']['id']

    # Only the owner confirms
    assert client.post(f'/api/bookings/{booking_id}/confirm', headers=auth_headers(tenant)).status_code == 403
    assert client.post(f'/api/bookings/{booking_id}/complete', headers=auth_headers(owner)).status_code == 400

    response = client.post(f'/api/bookings/{booking_id}/confirm', headers=auth_headers(owner))
    assert response.get_json()['booking']['status'] == 'confirmed'

    response = client.post(f'/api/bookings/{booking_id}/complete', headers=auth_headers(owner))
    assert response.get_json()['booking']['status'] == 'completed'

    assert client.post(f'/api/bookings/{booking_id}/cancel', headers=auth_headers(tenant)).status_code == 400


def test_either_party_lists_and_cancels(client, tenant, owner, listing):
    booking_id = request_booking(client, tenant, listing).get_json()['booking']['id']

    tenant_view = client.get('/api/bookings', headers=auth_headers(tenant)).get_json()['bookings']
    owner_view = client.get('/api/bookings', headers=auth_headers(owner)).get_json()['bookings']
    assert [b['id'] for b in tenant_view] == [booking_id]
    assert owner_view[0]['tenant']['full_name'] == 'Ana Souza'
    assert 'tenant' not in tenant_view[0]

    response = client.post(f'/api/bookings/{booking_id}/cancel', headers=auth_headers(tenant))
    assert response.get_json()['booking']['status'] == 'cancelled'
    assert db.session.get(Booking, booking_id).cancelled_by == tenant.id


def test_booking_validation(client, tenant, owner, listing):
    assert request_booking(client, tenant, listing, start_date=None).status_code == 400
    assert request_booking(client, tenant, listing, end_date='2025-01-01').status_code == 400
    assert request_booking(client, tenant, listing, property_id=999).status_code == 404
    assert request_booking(client, owner, listing).status_code == 403

    listing.available = False
    db.session.commit()
    assert request_booking(client, tenant, listing).status_code == 400


def complete_stay(tenant, listing):
    db.session.add(Booking(property_id=listing.id, tenant_id=tenant.id, start_date=date(2026, 1, 5),
                           status='completed'))
    db.session.commit()


def test_review_requires_completed_stay(client, tenant, listing):
    url = f'/api/reviews/property/{listing.id}'

    assert client.get(f'{url}/eligibility', headers=auth_headers(tenant)).get_json() == {'can_review': False}
    assert client.post(url, json={'rating': 5}, headers=auth_headers(tenant)).status_code == 403

    complete_stay(tenant, listing)
    assert client.get(f'{url}/eligibility', headers=auth_headers(tenant)).get_json() == {'can_review': True}

    response = client.post(url, json={'rating': 5, 'comment': '<b>Great</b> host'}, headers=auth_headers(tenant))
    assert response.status_code == 201
    assert response.get_json()['review']['comment'] == 'Great host'

    # One review per tenant and property
    assert client.post(url, json={'rating': 4}, headers=auth_headers(tenant)).status_code == 403


def test_review_rating_must_be_between_one_and_five(client, tenant, listing):
    complete_stay(tenant, listing)
    url = f'/api/reviews/property/{listing.id}'

    for rating in (0, 6, 'five', None):
        assert client.post(url, json={'rating': rating}, headers=auth_headers(tenant)).status_code == 400


def test_reviews_listed_newest_first_with_summary(client, tenant, listing):
    other = make_user('bia@student.example', full_name='Bia Costa')
    for reviewer, rating in ((tenant, 5), (other, 3)):
        complete_stay(reviewer, listing)
        client.post(f'/api/reviews/property/{listing.id}', json={'rating': rating}, headers=auth_headers(reviewer))

    body = client.get(f'/api/reviews/property/{listing.id}').get_json()
    assert [r['user']['full_name'] for r in body['reviews']] == ['Bia Costa', 'Ana Souza']
    assert body['rating'] == 4.0
    assert body['review_count'] == 2
