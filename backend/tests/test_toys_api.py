import uuid


def _ids(rows):
    return [row['id'] for row in rows]


def test_create_get_and_owner_listing(api, make_user, make_toy):
    user, headers = make_user('lister')
    toy = make_toy(headers, title='Rocking horse', tags=[' wooden ', '', 'horse'])
    assert toy['user_id'] == user['id']
    assert toy['tags'] == ['wooden', 'horse']
    assert toy['is_available'] is True
    assert toy['status'] == 'active'

    r = api.get(f"/api/toys/{toy['id']}")
    assert r.status_code == 200
    assert r.json()['title'] == 'Rocking horse'
    assert api.get('/api/toys/999999').status_code == 404

    r = api.get('/api/toys/mine', headers=headers)
    assert _ids(r.json()) == [toy['id']]
    r = api.get(f"/api/users/{user['id']}/toys")
    assert _ids(r.json()) == [toy['id']]

    r = api.get(f"/api/users/{user['id']}")
    assert r.json()['toys_shared'] == 1
    assert r.json()['sustainability_score'] == 5


def test_create_requires_auth(api):
    r = api.post('/api/toys', json={'title': 'x'})
    assert r.status_code in (401, 403)


def test_multi_value_filters(api, make_user, make_toy):
    user, headers = make_user('filters')
    good = make_toy(headers, condition='Good', category='Books', tags=['story'])
    new = make_toy(headers, condition='New', category='Puzzles', tags=['jigsaw'])
    fair = make_toy(headers, condition='Fair', category='Books', age_range='6-8 years')
    uid = user['id']

    r = api.get(f'/api/toys?userId={uid}&condition=Good&condition=New')
    assert _ids(r.json()) == [new['id'], good['id']]
    r = api.get(f'/api/toys?userId={uid}&condition=Good,Fair')
    assert _ids(r.json()) == [fair['id'], good['id']]
    r = api.get(f'/api/toys?userId={uid}&category=all')
    assert len(r.json()) == 3
    r = api.get(f'/api/toys?userId={uid}&ageRange=6-8 years')
    assert _ids(r.json()) == [fair['id']]
    r = api.get(f'/api/toys?userId={uid}&tags=jigsaw,story')
    assert _ids(r.json()) == [new['id'], good['id']]
    r = api.get(f'/api/toys?userId={uid}&search=JIGSAW')
    assert _ids(r.json()) == [new['id']]
    r = api.get(f'/api/toys?userId={uid}&isAvailable=maybe')
    assert r.status_code == 400


def test_location_with_comma(api, make_user, make_toy):
    user, headers = make_user('seattle')
    seattle = make_toy(headers, location='Seattle, WA')
    make_toy(headers, location='Seattle')
    uid = user['id']

    r = api.get(f'/api/toys?userId={uid}&location=Seattle, WA')
    assert _ids(r.json()) == [seattle['id']]
    r = api.get(f'/api/toys?userId={uid}&location=Seattle, WA&location=Tacoma')
    assert _ids(r.json()) == [seattle['id']]


def test_distance_filter(api, make_user, make_toy):
    user, headers = make_user('geo')
    near = make_toy(headers, title='Near toy', latitude=10.0, longitude=10.05)
    far = make_toy(headers, title='Far toy', latitude=10.0, longitude=11.0)
    make_toy(headers, title='Nowhere toy')
    uid = user['id']

    # default radius is 10 miles; the far toy is ~68 miles away, the unlocated one is dropped
    r = api.get(f'/api/toys?userId={uid}&latitude=10&longitude=10')
    assert r.status_code == 200
    rows = r.json()
    assert _ids(rows) == [near['id']]
    assert 0 < rows[0]['distance'] < 10

    r = api.get(f'/api/toys?userId={uid}&latitude=10&longitude=10&distance=100')
    assert _ids(r.json()) == [far['id'], near['id']]
    assert all('distance' in row for row in r.json())

    # one coordinate alone disables the radius filter
    r = api.get(f'/api/toys?userId={uid}&latitude=10')
    assert len(r.json()) == 3
    assert 'distance' not in r.json()[0]

    r = api.get(f'/api/toys?userId={uid}&latitude=10&longitude=10&distance=-1')
    assert r.status_code == 400
    r = api.get(f'/api/toys?userId={uid}&latitude=95&longitude=10')
    assert r.status_code == 400


def test_update_and_delete_permissions(api, make_user, make_toy, admin_headers):
    owner, headers = make_user('owner')
    _, stranger = make_user('stranger')
    toy = make_toy(headers)

    r = api.patch(f"/api/toys/{toy['id']}", json={'title': 'Renamed'}, headers=stranger)
    assert r.status_code == 403
    r = api.patch(f"/api/toys/{toy['id']}", json={'title': 'Renamed', 'status': 'archived'}, headers=headers)
    assert r.status_code == 200
    assert r.json()['title'] == 'Renamed'
    assert r.json()['status'] == 'archived'
    r = api.patch(f"/api/toys/{toy['id']}", json={'status': 'lost'}, headers=headers)
    assert r.status_code == 422

    assert api.delete(f"/api/toys/{toy['id']}", headers=stranger).status_code == 403
    assert api.delete(f"/api/toys/{toy['id']}", headers=headers).status_code == 204
    assert api.get(f"/api/toys/{toy['id']}").status_code == 404
    assert api.get(f"/api/users/{owner['id']}").json()['toys_shared'] == 0

    second = make_toy(headers, title=f'Second {uuid.uuid4().hex[:4]}')
    assert api.delete(f"/api/admin/toys/{second['id']}", headers=admin_headers).status_code == 204
    assert api.get(f"/api/toys/{second['id']}").status_code == 404
