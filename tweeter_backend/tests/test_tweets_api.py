import os
import shutil
import sqlite3

from conftest import auth, register
from src.api.db import PostRepository


def _tweet(client, token, text):
    res = client.post("/api/tweets", json={"text": text}, headers=auth(token))
    assert res.status_code == 200, res.text
    return res.json()


def test_list_is_empty_initially(client):
    res = client.get("/api/tweets")
    assert res.status_code == 200
    assert res.json() == []


def test_create_requires_token(client):
    res = client.post("/api/tweets", json={"text": "hello"})
    assert res.status_code == 401
    assert res.json()["message"] == "Unauthorized"
    assert client.get("/api/tweets").json() == []


def test_auth_is_checked_before_validation(client):
    res = client.post("/api/tweets", json={})
    assert res.status_code == 401


def test_create_validation_failure(client):
    user = register(client)
    res = client.post("/api/tweets", json={"text": "   "}, headers=auth(user["token"]))
    assert res.status_code == 400
    assert res.json()["errors"] == {"text": "Text is required"}


def test_create_attaches_author_and_lists_newest_first(client):
    alice = register(client)
    bob = register(client, username="bob", email="bob@example.com")
    _tweet(client, alice["token"], "first")
    created = _tweet(client, bob["token"], "hello")
    assert created["text"] == "hello"
    assert created["author"] == {"id": bob["id"], "username": "bob"}

    listed = client.get("/api/tweets").json()
    assert listed[0] == created
    assert [t["text"] for t in listed] == ["hello", "first"]


def test_user_tweets_for_unknown_user(client):
    res = client.get("/api/tweets/user/9999")
    assert res.status_code == 404
    body = res.json()
    assert body["message"] == "User not found"
    assert body["errors"] == {"message": "No user found with that id"}


def test_user_tweets_for_non_numeric_id(client):
    assert client.get("/api/tweets/user/abc").status_code == 404


def test_user_tweets_empty_and_filtered(client):
    alice = register(client)
    bob = register(client, username="bob", email="bob@example.com")
    assert client.get(f"/api/tweets/user/{bob['id']}").json() == []

    _tweet(client, alice["token"], "from alice")
    assert client.get(f"/api/tweets/user/{bob['id']}").json() == []
    assert [t["text"] for t in client.get(f"/api/tweets/user/{alice['id']}").json()] == ["from alice"]


def test_get_unknown_tweet(client):
    for missing in ("12345", "not-an-id", "99999999999999999999999"):
        res = client.get(f"/api/tweets/{missing}")
        assert res.status_code == 404
        assert res.json()["message"] == "Tweet not found"


def test_get_tweet_is_idempotent(client):
    user = register(client)
    created = _tweet(client, user["token"], "same every time")
    first = client.get(f"/api/tweets/{created['id']}").json()
    second = client.get(f"/api/tweets/{created['id']}").json()
    assert first == second == created


def test_list_swallows_lookup_errors(client, monkeypatch):
    user = register(client)
    _tweet(client, user["token"], "hidden by the failure")

    def broken(self, *args):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(PostRepository, "list_all", broken)
    monkeypatch.setattr(PostRepository, "list_by_author", broken)

    res = client.get("/api/tweets")
    assert res.status_code == 200
    assert res.json() == []

    res = client.get(f"/api/tweets/user/{user['id']}")
    assert res.status_code == 200
    assert res.json() == []


def test_id_aliases_do_not_resolve(client):
    user = register(client)
    created = _tweet(client, user["token"], "only one path")
    assert created["id"] == 1
    assert client.get("/api/tweets/1").status_code == 200
    for alias in ("0_1", "+1", "%201", "%D9%A1"):
        assert client.get(f"/api/tweets/{alias}").status_code == 404, alias
        assert client.get(f"/api/tweets/user/{alias}").status_code == 404, alias


def test_unreadable_store_degrades_lookups(client, settings):
    # replace the database file with a directory so no connection can open
    os.remove(settings.sqlite_db)
    os.mkdir(settings.sqlite_db)
    try:
        res = client.get("/api/tweets")
        assert res.status_code == 200
        assert res.json() == []

        res = client.get("/api/tweets/user/1")
        assert res.status_code == 404
        assert res.json()["message"] == "User not found"
    finally:
        shutil.rmtree(settings.sqlite_db)


def test_create_with_empty_object_stores_nothing(client):
    user = register(client)
    res = client.post("/api/tweets", json={}, headers=auth(user["token"]))
    assert res.status_code == 400
    assert res.json()["errors"] == {"text": "Text is required"}
    assert client.get("/api/tweets").json() == []
