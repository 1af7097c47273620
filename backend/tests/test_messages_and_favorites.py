import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from toyshare import models
from toyshare.database import engine


def test_messaging_flow(api, make_user, make_toy):
    alice, alice_h = make_user('alice')
    bob, bob_h = make_user('bob')
    toy = make_toy(alice_h)

    r = api.post('/api/messages', json={'receiver_id': alice['id'], 'toy_id': toy['id'], 'content': 'me'},
                 headers=alice_h)
    assert r.status_code == 400
    r = api.post('/api/messages', json={'receiver_id': 999999, 'toy_id': toy['id'], 'content': 'hi'},
                 headers=bob_h)
    assert r.status_code == 404
    r = api.post('/api/messages', json={'receiver_id': alice['id'], 'toy_id': toy['id'], 'content': '   '},
                 headers=bob_h)
    assert r.status_code == 400

    first = api.post('/api/messages', json={'receiver_id': alice['id'], 'toy_id': toy['id'], 'content': 'Hi!'},
                     headers=bob_h)
    assert first.status_code == 201
    first = first.json()
    assert first['read'] is False
    second = api.post('/api/messages', json={'receiver_id': alice['id'], 'toy_id': toy['id'],
                                             'content': 'Still available?'}, headers=bob_h).json()
    reply = api.post('/api/messages', json={'receiver_id': bob['id'], 'toy_id': toy['id'], 'content': 'Yes'},
                     headers=alice_h).json()

    convo = api.get(f"/api/messages/{bob['id']}", headers=alice_h).json()
    assert [m['id'] for m in convo] == [first['id'], second['id'], reply['id']]
    inbox = api.get('/api/messages', headers=alice_h).json()
    assert inbox[0]['id'] == reply['id']
    assert api.get('/api/messages/unread/count', headers=alice_h).json() == {'unread': 2}

    assert api.patch(f"/api/messages/{first['id']}/read", headers=bob_h).status_code == 403
    r = api.patch(f"/api/messages/{first['id']}/read", headers=alice_h)
    assert r.status_code == 200
    assert r.json()['read'] is True
    assert api.get('/api/messages/unread/count', headers=alice_h).json() == {'unread': 1}

    # read messages stay, unread ones can be retracted by the sender only
    assert api.delete(f"/api/messages/{first['id']}", headers=bob_h).status_code == 400
    assert api.delete(f"/api/messages/{second['id']}", headers=alice_h).status_code == 403
    assert api.delete(f"/api/messages/{second['id']}", headers=bob_h).json() == {'success': True}
    assert api.delete('/api/messages/999999', headers=bob_h).status_code == 404

    r = api.delete(f"/api/conversations/{alice['id']}", headers=bob_h)
    assert r.json() == {'success': True, 'deleted': 2}
    assert api.get(f"/api/messages/{bob['id']}", headers=alice_h).json() == []


def test_favorites_toggle(api, make_user, make_toy):
    _, owner_h = make_user('fav_owner')
    _, fan_h = make_user('fan')
    toy = make_toy(owner_h)
    tid = toy['id']

    assert api.get(f'/api/toys/{tid}/favorite', headers=fan_h).json() == {'favorited': False}
    r = api.post(f'/api/toys/{tid}/favorite', headers=fan_h)
    assert r.status_code == 201
    assert r.json()['favorited'] is True
    assert api.get(f'/api/toys/{tid}/favorite', headers=fan_h).json() == {'favorited': True}

    favs = api.get('/api/favorites', headers=fan_h).json()
    assert len(favs) == 1
    assert favs[0]['toy']['id'] == tid

    r = api.post(f'/api/toys/{tid}/favorite', headers=fan_h)
    assert r.status_code == 200
    assert r.json() == {'favorited': False}
    assert api.get('/api/favorites', headers=fan_h).json() == []
    assert api.post('/api/toys/999999/favorite', headers=fan_h).status_code == 404


def test_deleting_toy_drops_its_favorites(api, make_user, make_toy):
    _, owner_h = make_user('fav_owner2')
    _, fan_h = make_user('fan2')
    toy = make_toy(owner_h)
    api.post(f"/api/toys/{toy['id']}/favorite", headers=fan_h)
    api.delete(f"/api/toys/{toy['id']}", headers=owner_h)
    assert api.get('/api/favorites', headers=fan_h).json() == []


def test_favorite_pair_is_unique(api, make_user, make_toy):
    fan, fan_h = make_user('unique_fan')
    _, owner_h = make_user('unique_owner')
    toy = make_toy(owner_h)
    api.post(f"/api/toys/{toy['id']}/favorite", headers=fan_h)

    with Session(engine) as session:
        session.add(models.Favorite(user_id=fan['id'], toy_id=toy['id']))
        with pytest.raises(IntegrityError):
            session.commit()
