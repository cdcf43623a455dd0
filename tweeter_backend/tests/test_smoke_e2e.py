from conftest import auth, register


def test_health(client, settings):
    res = client.get("/")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["db"] == settings.sqlite_db


def test_register_post_and_browse_flow(client):
    # Register and confirm the token identifies the new user
    alice = register(client)
    current = client.get("/api/users/current", headers=auth(alice["token"]))
    assert current.status_code == 200
    assert current.json() == {"id": alice["id"], "username": "alice", "email": "alice@example.com"}

    # Log in again with the same credentials
    login = client.post("/api/users/login", json={"email": "alice@example.com", "password": "secret123"})
    assert login.status_code == 200
    assert {k: login.json()[k] for k in ("id", "username", "email")} == {
        "id": alice["id"], "username": "alice", "email": "alice@example.com"
    }

    # Post with the login token
    for i in range(3):
        r = client.post("/api/tweets", json={"text": f"Post {i}"}, headers=auth(login.json()["token"]))
        assert r.status_code == 200
        assert r.json()["author"] == {"id": alice["id"], "username": "alice"}

    # Browse
    all_tweets = client.get("/api/tweets").json()
    assert [t["text"] for t in all_tweets] == ["Post 2", "Post 1", "Post 0"]

    mine = client.get(f"/api/tweets/user/{alice['id']}").json()
    assert mine == all_tweets

    first = client.get(f"/api/tweets/{all_tweets[-1]['id']}")
    assert first.status_code == 200
    assert first.json()["text"] == "Post 0"


def test_module_level_app_is_served():
    from src.api import main

    assert main.app.title == "Tweeter Backend"


def test_openapi_documents_request_bodies(client):
    paths = client.get("/openapi.json").json()["paths"]
    register_schema = paths["/api/users/register"]["post"]["requestBody"]["content"]["application/json"]["schema"]
    assert set(register_schema["properties"]) == {"username", "email", "password"}
    login_schema = paths["/api/users/login"]["post"]["requestBody"]["content"]["application/json"]["schema"]
    assert set(login_schema["properties"]) == {"email", "password"}
    tweet_schema = paths["/api/tweets"]["post"]["requestBody"]["content"]["application/json"]["schema"]
    assert set(tweet_schema["properties"]) == {"text"}
