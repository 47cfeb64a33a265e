from tourbook.auth import jwt_handler
from tourbook.core import config


def test_overview_is_public(client, make_tour) -> None:
    make_tour()
    make_tour(name='The Secret Hideaway', secret_tour=True)

    response = client.get('/')

    body = response.json()
    assert response.status_code == 200
    assert body['title'] == 'All Tours'
    assert body['user'] is None
    assert [tour['name'] for tour in body['tours']] == ['The Forest Hiker']


def test_overview_pages_tours_and_reports_total(client, make_tour) -> None:
    for number in range(1, 6):
        make_tour(name=f'Test Tour Number {number:02d}', price=number * 100.0, duration=number)

    body = client.get('/', params={'duration[gte]': 2, 'sort': 'price', 'limit': 2, 'page': 2}).json()

    assert body['total'] == 4
    assert [tour['name'] for tour in body['tours']] == ['Test Tour Number 04', 'Test Tour Number 05']


def test_overview_is_personalized_from_cookie(client, make_user) -> None:
    user = make_user()
    cookie = f'{config.JWT_COOKIE_NAME}={jwt_handler.issue_token(user.id)}'

    body = client.get('/', headers={'Cookie': cookie}).json()

    assert body['user']['email'] == 'john.test@example.com'
    assert 'password' not in body['user']


def test_overview_ignores_logged_out_cookie(client) -> None:
    response = client.get('/', headers={'Cookie': f'{config.JWT_COOKIE_NAME}=loggedout'})

    assert response.status_code == 200
    assert response.json()['user'] is None


def test_tour_page_by_slug(client, db, make_tour, make_user, make_review) -> None:
    tour = make_tour()
    guide = make_user(name='Sophie Guide', email='sophie@example.com', role='guide')
    tour.guides = [guide]
    db.commit()
    make_review(tour, make_user(), rating=4)

    response = client.get('/tour/the-forest-hiker')

    body = response.json()
    assert response.status_code == 200
    assert body['title'] == 'The Forest Hiker Tour'
    assert body['tour']['reviews'][0]['user']['name'] == 'John Test'
    assert body['tour']['guides'] == [{'id': guide.id, 'name': 'Sophie Guide', 'photo': 'default.jpg', 'role': 'guide'}]


def test_tour_page_unknown_slug(client) -> None:
    response = client.get('/tour/nowhere-at-all')

    assert response.status_code == 404
    assert response.json()['message'] == 'There is no tour with that name.'


def test_my_tours_lists_booked_tours(client, make_tour, make_user, make_booking, headers_for) -> None:
    forest = make_tour()
    make_tour(name='The Sea Explorer')
    user = make_user()
    make_booking(forest, user)

    assert client.get('/my-tours').status_code == 401

    body = client.get('/my-tours', headers=headers_for(user)).json()
    assert body['title'] == 'My Tours'
    assert [tour['name'] for tour in body['tours']] == ['The Forest Hiker']
