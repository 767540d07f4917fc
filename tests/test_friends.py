import pytest


async def _request(client, recipient_id):
    return await client.post("/friends/request", json={"recipientId": recipient_id})


@pytest.mark.asyncio
async def test_list_friends_empty(client):
    response = await client.get("/friends")
    assert response.status_code == 200
    assert response.json() == {"success": True, "friendships": []}


@pytest.mark.asyncio
async def test_send_request(client, second_user):
    response = await _request(client, second_user.id)
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert isinstance(data["friendshipId"], int)


@pytest.mark.asyncio
async def test_request_missing_recipient_id(client):
    response = await client.post("/friends/request", json={})
    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_request_nonexistent_user(client):
    response = await _request(client, 9999)
    assert response.status_code == 404
    assert "not found" in response.json()["error"].lower()


@pytest.mark.asyncio
async def test_request_self(client, test_user):
    response = await _request(client, test_user.id)
    assert response.status_code == 400
    assert "yourself" in response.json()["error"].lower()


@pytest.mark.asyncio
async def test_duplicate_outgoing_request(client, second_user):
    await _request(client, second_user.id)
    response = await _request(client, second_user.id)
    assert response.status_code == 409
    data = response.json()
    assert data["status"] == "outgoing"
    assert "friendshipId" not in data


@pytest.mark.asyncio
async def test_request_accept_scenario(client, act_as, test_user, second_user):
    created = await _request(client, second_user.id)
    friendship_id = created.json()["friendshipId"]

    act_as(second_user)
    mirrored = await _request(client, test_user.id)
    assert mirrored.status_code == 409
    assert mirrored.json()["status"] == "incoming"
    assert mirrored.json()["friendshipId"] == friendship_id

    accepted = await client.put(f"/friends/accept/{friendship_id}")
    assert accepted.status_code == 200
    assert accepted.json() == {"success": True}

    for user, other in ((second_user, test_user), (test_user, second_user)):
        act_as(user)
        response = await client.get("/friends")
        friendships = response.json()["friendships"]
        assert len(friendships) == 1
        assert friendships[0]["id"] == friendship_id
        assert friendships[0]["status"] == "accepted"
        assert friendships[0]["requesterId"] == test_user.id
        assert friendships[0]["addresseeId"] == second_user.id
        assert friendships[0]["friend"] == {
            "id": other.id,
            "nick": other.nick,
            "email": other.email,
        }


@pytest.mark.asyncio
async def test_requester_cannot_accept(client, second_user):
    created = await _request(client, second_user.id)
    friendship_id = created.json()["friendshipId"]

    response = await client.put(f"/friends/accept/{friendship_id}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_accept_nonexistent(client):
    response = await client.put("/friends/accept/4242")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_malformed_friendship_id(client):
    response = await client.put("/friends/accept/abc")
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method, path",
    [
        ("PUT", "/friends/accept/99999999999999999999"),
        ("DELETE", "/friends/reject/99999999999999999999"),
        ("DELETE", "/friends/99999999999999999999"),
        ("PUT", "/friends/accept/0"),
    ],
)
async def test_out_of_range_friendship_id(client, method, path):
    response = await client.request(method, path)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


@pytest.mark.asyncio
@pytest.mark.parametrize("recipient_id", [99999999999999999999, 0])
async def test_out_of_range_recipient_id(client, recipient_id):
    response = await _request(client, recipient_id)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


@pytest.mark.asyncio
async def test_reject_scenario(client, act_as, test_user, second_user):
    created = await _request(client, second_user.id)
    friendship_id = created.json()["friendshipId"]

    response = await client.delete(f"/friends/reject/{friendship_id}")
    assert response.status_code == 403

    act_as(second_user)
    response = await client.delete(f"/friends/reject/{friendship_id}")
    assert response.status_code == 200
    assert response.json() == {"success": True}

    act_as(test_user)
    response = await client.get("/friends")
    assert friendship_id not in [f["id"] for f in response.json()["friendships"]]

    # No residual state: the pair can start over
    response = await _request(client, second_user.id)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_double_reject_is_not_found(client, act_as, second_user):
    created = await _request(client, second_user.id)
    friendship_id = created.json()["friendshipId"]

    act_as(second_user)
    await client.delete(f"/friends/reject/{friendship_id}")
    response = await client.delete(f"/friends/reject/{friendship_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_remove_friend(client, act_as, test_user, second_user, third_user):
    created = await _request(client, second_user.id)
    friendship_id = created.json()["friendshipId"]
    act_as(second_user)
    await client.put(f"/friends/accept/{friendship_id}")

    act_as(third_user)
    response = await client.delete(f"/friends/{friendship_id}")
    assert response.status_code == 403

    act_as(test_user)
    response = await client.delete(f"/friends/{friendship_id}")
    assert response.status_code == 200

    act_as(second_user)
    response = await client.get("/friends")
    assert response.json()["friendships"] == []


@pytest.mark.asyncio
async def test_list_alias(client, second_user):
    await _request(client, second_user.id)
    response = await client.get("/friends/list")
    assert response.status_code == 200
    assert response.json()["friendships"][0]["direction"] == "outgoing"


@pytest.mark.asyncio
async def test_search_by_nick(client, second_user, third_user):
    response = await client.get("/friends/search", params={"query": "Stran"})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["users"] == [
        {"id": third_user.id, "nick": "stranger", "email": "stranger@example.com"}
    ]


@pytest.mark.asyncio
async def test_search_by_id_excludes_self(client, test_user, second_user):
    response = await client.get(
        "/friends/search", params={"query": str(test_user.id), "searchType": "id"}
    )
    assert response.status_code == 200
    assert test_user.id not in [u["id"] for u in response.json()["users"]]


@pytest.mark.asyncio
async def test_search_by_id_non_digit(client):
    response = await client.get(
        "/friends/search", params={"query": "abc123", "searchType": "id"}
    )
    assert response.status_code == 400
    assert "digits" in response.json()["error"].lower()


@pytest.mark.asyncio
async def test_search_requires_query(client):
    response = await client.get("/friends/search")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_search_unknown_type_falls_back_to_nick_or_email(client, second_user):
    response = await client.get(
        "/friends/search", params={"query": "fri", "searchType": "nick"}
    )
    assert response.status_code == 200
    assert [u["id"] for u in response.json()["users"]] == [second_user.id]


@pytest.mark.asyncio
async def test_daily_request_limit(client, second_user, fake_redis, test_user):
    from datetime import datetime, timezone

    from soundcircle.config import settings

    key = f"friend_requests:{test_user.id}:{datetime.now(timezone.utc).date()}"
    await fake_redis.set(key, str(settings.FRIEND_REQUEST_DAILY_LIMIT))

    response = await _request(client, second_user.id)
    assert response.status_code == 429
    assert "limit" in response.json()["error"].lower()


@pytest.mark.asyncio
async def test_friends_require_token(anon_client):
    response = await anon_client.get("/friends")
    assert response.status_code == 401
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_mirrored_request_at_daily_limit(client, act_as, fake_redis, test_user, second_user):
    from datetime import datetime, timezone

    from soundcircle.config import settings

    created = await _request(client, second_user.id)
    friendship_id = created.json()["friendshipId"]

    today = datetime.now(timezone.utc).date()
    for user in (test_user, second_user):
        await fake_redis.set(
            f"friend_requests:{user.id}:{today}", str(settings.FRIEND_REQUEST_DAILY_LIMIT)
        )

    repeated = await _request(client, second_user.id)
    assert repeated.status_code == 409
    assert repeated.json()["status"] == "outgoing"

    act_as(second_user)
    mirrored = await _request(client, test_user.id)
    assert mirrored.status_code == 409
    assert mirrored.json()["status"] == "incoming"
    assert mirrored.json()["friendshipId"] == friendship_id
