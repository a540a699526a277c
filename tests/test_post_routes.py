from __future__ import annotations

from datetime import timedelta

from sqlalchemy.exc import OperationalError

from blog_api.database import get_db
from blog_api.sessions import utcnow
from conftest import login, session_id_of, signup


def _create(client, title: str = "t", body: str = "b"):
    return client.post("/posts", json={"title": title, "body": body})


def test_signup_login_then_create_post(client) -> None:
    assert signup(client).status_code == 201
    assert login(client).status_code == 200

    created = _create(client)
    assert created.status_code == 201
    post = created.json()["data"]["post"]
    assert created.json()["message"] == "Post created successfully"
    assert (post["title"], post["body"]) == ("t", "b")

    client.cookies.clear()
    denied = _create(client)
    assert denied.status_code == 401
    assert len(client.get("/posts").json()["data"]["posts"]) == 1


def test_create_without_session_has_no_side_effect(client) -> None:
    response = _create(client)

    assert response.status_code == 401
    assert response.json() == {"message": "Not authenticated"}
    assert client.get("/posts").json()["data"]["posts"] == []


def test_expired_session_is_same_as_none(logged_in) -> None:
    store = logged_in.app.state.session_store
    sid = session_id_of(logged_in)
    store.set(sid, store.get(sid).data, utcnow() - timedelta(seconds=1))

    response = _create(logged_in)

    assert response.status_code == 401
    assert logged_in.get("/posts").json()["data"]["posts"] == []


def test_get_missing_post_is_404(client) -> None:
    response = client.get("/posts/0123456789abcdef0123456789abcdef")

    assert response.status_code == 404
    assert response.json() == {"error": "Post not found"}


def test_reads_are_public(logged_in) -> None:
    post_id = _create(logged_in).json()["data"]["post"]["id"]
    logged_in.cookies.clear()

    listing = logged_in.get("/posts")
    assert listing.status_code == 200
    assert listing.json()["message"] == "Posts fetched successfully"
    assert [p["id"] for p in listing.json()["data"]["posts"]] == [post_id]

    single = logged_in.get(f"/posts/{post_id}")
    assert single.status_code == 200
    assert single.json()["data"]["post"]["title"] == "t"


def test_create_requires_title_and_body(logged_in) -> None:
    response = logged_in.post("/posts", json={"title": "only title"})

    assert response.status_code == 400
    assert response.json() == {"error": "Title and body are required"}


def test_update_post(logged_in) -> None:
    post_id = _create(logged_in).json()["data"]["post"]["id"]

    response = logged_in.patch(f"/posts/{post_id}", json={"title": "new"})

    assert response.status_code == 200
    assert response.json()["message"] == "Post updated successfully"
    post = response.json()["data"]["post"]
    assert (post["title"], post["body"]) == ("new", "b")


def test_update_requires_a_field(logged_in) -> None:
    post_id = _create(logged_in).json()["data"]["post"]["id"]

    response = logged_in.patch(f"/posts/{post_id}", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "Title or body is required"}


def test_update_missing_post_is_404(logged_in) -> None:
    response = logged_in.patch("/posts/nope", json={"title": "x"})
    assert response.status_code == 404


def test_update_requires_session(logged_in) -> None:
    post_id = _create(logged_in).json()["data"]["post"]["id"]
    logged_in.cookies.clear()

    assert logged_in.patch(f"/posts/{post_id}", json={"title": "x"}).status_code == 401
    assert logged_in.get(f"/posts/{post_id}").json()["data"]["post"]["title"] == "t"


def test_delete_post(logged_in) -> None:
    post_id = _create(logged_in).json()["data"]["post"]["id"]

    response = logged_in.delete(f"/posts/{post_id}")

    assert response.status_code == 200
    assert response.json() == {"message": "Post deleted successfully"}
    assert logged_in.get(f"/posts/{post_id}").status_code == 404
    assert logged_in.delete(f"/posts/{post_id}").status_code == 404


def test_delete_requires_session(logged_in) -> None:
    post_id = _create(logged_in).json()["data"]["post"]["id"]
    logged_in.cookies.clear()

    assert logged_in.delete(f"/posts/{post_id}").status_code == 401
    assert logged_in.get(f"/posts/{post_id}").status_code == 200


def test_create_rejects_whitespace_title(logged_in) -> None:
    response = logged_in.post("/posts", json={"title": "   ", "body": "b"})

    assert response.status_code == 400
    assert response.json() == {"error": "Title and body are required"}


def test_database_outage_is_503(app, client) -> None:
    def _db_down():
        raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

    app.dependency_overrides[get_db] = _db_down
    try:
        response = client.get("/posts")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json() == {"message": "Database unavailable"}
