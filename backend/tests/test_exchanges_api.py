import pytest


def _metrics(api):
    return api.get('/api/community-metrics').json()


def test_request_lifecycle_and_scoring(api, make_user, make_toy):
    owner, owner_h = make_user('giver')
    req_user, req_h = make_user('taker')
    rival, rival_h = make_user('rival')
    toy = make_toy(owner_h)
    tid = toy['id']

    r = api.post(f'/api/toys/{tid}/request', json={'message': 'mine please'}, headers=owner_h)
    assert r.status_code == 400
    assert r.json()['detail'] == 'You cannot request your own toy'

    r = api.post(f'/api/toys/{tid}/request', json={'message': 'Could we swap?', 'preferred_location': 'Park'},
                 headers=req_h)
    assert r.status_code == 201
    request = r.json()
    assert request['status'] == 'pending'
    assert request['owner_id'] == owner['id']

    r = api.post(f'/api/toys/{tid}/request', json={'message': 'again'}, headers=req_h)
    assert r.status_code == 400
    rival_req = api.post(f'/api/toys/{tid}/request', json={'message': 'me too'}, headers=rival_h).json()

    assert api.get(f'/api/toys/{tid}/requests', headers=req_h).status_code == 403
    r = api.get(f'/api/toys/{tid}/requests', headers=owner_h)
    assert {row['id'] for row in r.json()} == {request['id'], rival_req['id']}
    assert [row['id'] for row in api.get('/api/requests/made', headers=req_h).json()] == [request['id']]
    assert len(api.get('/api/requests/received', headers=owner_h).json()) == 2

    # only the owner decides
    r = api.patch(f"/api/requests/{request['id']}/status", json={'status': 'approved'}, headers=req_h)
    assert r.status_code == 403
    r = api.patch(f"/api/requests/{request['id']}/status", json={'status': 'maybe'}, headers=owner_h)
    assert r.status_code == 422

    before = _metrics(api)
    r = api.patch(f"/api/requests/{request['id']}/status", json={'status': 'approved'}, headers=owner_h)
    assert r.status_code == 200
    assert r.json()['status'] == 'approved'
    after = _metrics(api)
    assert after['toys_saved'] == before['toys_saved'] + 1
    assert after['families_connected'] == before['families_connected'] + 1
    assert after['waste_reduced'] == pytest.approx(before['waste_reduced'] + 2)
    assert after['successful_exchanges'] == before['successful_exchanges'] + 1

    toy_now = api.get(f'/api/toys/{tid}').json()
    assert toy_now['is_available'] is False
    assert toy_now['status'] == 'traded'
    rival_rows = api.get('/api/requests/made', headers=rival_h).json()
    assert rival_rows[0]['status'] == 'rejected'

    giver = api.get(f"/api/users/{owner['id']}").json()
    assert (giver['toys_shared'], giver['successful_exchanges'], giver['sustainability_score']) == (1, 1, 8)
    taker = api.get(f"/api/users/{req_user['id']}").json()
    assert (taker['successful_exchanges'], taker['points']) == (1, 3)

    # decided requests cannot be decided again
    r = api.patch(f"/api/requests/{request['id']}/status", json={'status': 'rejected'}, headers=owner_h)
    assert r.status_code == 400
    # the toy is gone now
    _, late_h = make_user('late')
    r = api.post(f'/api/toys/{tid}/request', json={'message': 'still there?'}, headers=late_h)
    assert r.status_code == 400
    assert r.json()['detail'] == 'This toy is no longer available'


def test_feedback_and_reviews(api, make_user, make_toy):
    owner, owner_h = make_user('reviewed')
    _, req_h = make_user('reviewer')
    toy = make_toy(owner_h)
    req = api.post(f"/api/toys/{toy['id']}/request", json={'message': 'hi'}, headers=req_h).json()

    r = api.post(f"/api/requests/{req['id']}/feedback", json={'rating': 5, 'feedback': 'Great'}, headers=req_h)
    assert r.status_code == 400

    api.patch(f"/api/requests/{req['id']}/status", json={'status': 'approved'}, headers=owner_h)
    r = api.post(f"/api/requests/{req['id']}/feedback", json={'rating': 6}, headers=req_h)
    assert r.status_code == 422
    r = api.post(f"/api/requests/{req['id']}/feedback", json={'rating': 5, 'feedback': 'Great'}, headers=owner_h)
    assert r.status_code == 403
    r = api.post(f"/api/requests/{req['id']}/feedback", json={'rating': 5, 'feedback': 'Great'}, headers=req_h)
    assert r.status_code == 200
    assert r.json()['rating'] == 5

    reviews = api.get(f"/api/users/{owner['id']}/reviews").json()
    assert [row['id'] for row in reviews] == [req['id']]
    assert api.get('/api/users/999999/reviews').status_code == 404


def test_cancel_and_reject(api, make_user, make_toy):
    _, owner_h = make_user('canceller_owner')
    _, req_h = make_user('canceller')
    toy = make_toy(owner_h)
    req = api.post(f"/api/toys/{toy['id']}/request", json={'message': 'hi'}, headers=req_h).json()

    assert api.patch(f"/api/requests/{req['id']}/cancel", headers=owner_h).status_code == 403
    r = api.patch(f"/api/requests/{req['id']}/cancel", headers=req_h)
    assert r.status_code == 200
    assert r.json()['status'] == 'cancelled'
    assert api.patch(f"/api/requests/{req['id']}/cancel", headers=req_h).status_code == 400

    # a fresh request after cancelling is allowed, and can be rejected
    req2 = api.post(f"/api/toys/{toy['id']}/request", json={'message': 'again'}, headers=req_h).json()
    r = api.patch(f"/api/requests/{req2['id']}/status", json={'status': 'rejected'}, headers=owner_h)
    assert r.json()['status'] == 'rejected'
    assert api.get(f"/api/toys/{toy['id']}").json()['is_available'] is True
    assert api.patch('/api/requests/999999/cancel', headers=req_h).status_code == 404
