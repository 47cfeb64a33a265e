from tourbook.core import config


def test_checkout_session_uses_payment_gateway(client, make_tour, make_user, headers_for, payment_gateway) -> None:
    tour = make_tour()
    user = make_user()

    response = client.get(f'/api/v1/bookings/checkout-session/{tour.id}', headers=headers_for(user))

    assert response.status_code == 200
    assert response.json() == {
        'status': 'success',
        'session': {'id': 'cs_test_123', 'url': 'https://checkout.example.com/cs_test_123'},
    }
    assert payment_gateway.calls == [
        {
            'tour_id': tour.id,
            'customer_email': 'john.test@example.com',
            'success_url': f'{config.PUBLIC_BASE_URL}/my-tours?alert=booking',
            'cancel_url': f'{config.PUBLIC_BASE_URL}/tour/the-forest-hiker',
        }
    ]


def test_checkout_session_requires_login_and_existing_tour(client, make_user, headers_for, payment_gateway) -> None:
    assert client.get('/api/v1/bookings/checkout-session/1').status_code == 401

    missing = client.get('/api/v1/bookings/checkout-session/999', headers=headers_for(make_user()))

    assert missing.status_code == 404
    assert payment_gateway.calls == []


def test_booking_management_is_restricted(client, make_tour, make_user, headers_for) -> None:
    tour = make_tour()
    user = make_user()

    listing = client.get('/api/v1/bookings', headers=headers_for(user))
    created = client.post(
        '/api/v1/bookings',
        headers=headers_for(user),
        json={'tour_id': tour.id, 'user_id': user.id, 'price': 397},
    )

    assert listing.status_code == 403
    assert created.status_code == 403


def test_lead_guide_manages_bookings(client, make_tour, make_user, headers_for) -> None:
    tour = make_tour()
    customer = make_user()
    lead = make_user(name='Lourdes Browning', email='lourdes@example.com', role='lead-guide')
    headers = headers_for(lead)

    created = client.post(
        '/api/v1/bookings',
        headers=headers,
        json={'tour_id': tour.id, 'user_id': customer.id, 'price': 397},
    )
    assert created.status_code == 201
    booking_id = created.json()['data']['data']['id']

    listing = client.get('/api/v1/bookings', headers=headers)
    assert listing.json()['results'] == 1
    booking = listing.json()['data']['data'][0]
    assert booking['paid'] is True
    assert booking['tour'] == {'id': tour.id, 'name': 'The Forest Hiker'}
    assert booking['user'] == {'id': customer.id, 'name': 'John Test', 'email': 'john.test@example.com'}

    updated = client.patch(f'/api/v1/bookings/{booking_id}', headers=headers, json={'paid': False})
    assert updated.json()['data']['data']['paid'] is False

    assert client.delete(f'/api/v1/bookings/{booking_id}', headers=headers).status_code == 204
    assert client.get(f'/api/v1/bookings/{booking_id}', headers=headers).status_code == 404
