import pytest
from fastapi.testclient import TestClient

from main import app, get_client
from tests.conftest import ADMIN_TOKEN, USER_TOKEN
from tests.helpers import body_of, make_token

CONTENT = {"time": 1, "blocks": [{"id": "p", "type": "paragraph", "data": {"text": "Body"}}], "version": "2.28.0"}


@pytest.fixture
def api(backend):
    shared = backend.client()
    app.dependency_overrides[get_client] = lambda: shared
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_api(backend, api):
    backend.add("POST", "/auth/admin/me", json={"id": 1})
    api.cookies.set("adminToken", ADMIN_TOKEN)
    return api


def test_login_sets_session_cookie(backend, api):
    backend.add("POST", "/auth/login", json={"token": USER_TOKEN})
    response = api.post("/auth/login", json={"email": "writer@example.com", "password": "secret"})
    assert response.status_code == 200
    assert response.json()["redirect"] == "/"
    assert response.cookies.get("token") == USER_TOKEN


def test_login_then_account_without_prompt(backend, api):
    backend.add("POST", "/auth/login", json={"token": USER_TOKEN})
    backend.add("POST", "/auth/me", json={"id": 5})
    backend.add("GET", "/users/5", json={"id": 5, "name": "Writer", "email": "w@example.com"})
    backend.add("GET", "/blogs/users/5", json=[])
    backend.add("GET", "/series/users/5", json=[])
    api.post("/auth/login", json={"email": "w@example.com", "password": "secret"})
    state = api.get("/account").json()
    assert "redirect" not in state
    assert state["user"]["name"] == "Writer"
    assert backend.sent("GET", "/users/5")[0].headers["Authorization"] == f"Bearer {USER_TOKEN}"


def test_failed_login_is_a_400(backend, api):
    backend.add("POST", "/auth/login", status=401, json={"message": "Invalid credentials"})
    response = api.post("/auth/login", json={"email": "writer@example.com", "password": "bad"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid credentials"


def test_invalid_stored_token_is_cleared(backend, api):
    backend.add("POST", "/auth/me", status=401, json={"message": "Token expired"})
    backend.add("GET", "/blogs", json=[])
    backend.add("GET", "/categories", json=[])
    backend.add("GET", "/series", json=[])
    api.cookies.set("token", USER_TOKEN)
    response = api.get("/")
    assert response.json()["session"] == {"user": False, "admin": False}
    assert any(h.startswith("token=") for h in response.headers.get_list("set-cookie"))


def test_blog_detail_html_and_missing_blog(backend, api):
    backend.add("GET", "/blogs/1", json={"id": 1, "title": "Hello", "content": CONTENT})
    response = api.get("/blogs/1")
    assert response.json()["html"] == "<p>Body</p>"
    missing = api.get("/blogs/2")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Blog not found"


def test_category_query_parameters(backend, api):
    backend.add("GET", "/blogs/categories/1", json=[{"id": i, "title": f"Post {i}"} for i in range(1, 10)])
    backend.add("GET", "/categories/1", json={"id": 1, "title": "Tech"})
    response = api.get("/category/1", params={"per_page": "4", "page_number": 3})
    state = response.json()
    assert [b["id"] for b in state["blogs"]] == [9]
    assert state["list"]["page"] == 3


def test_create_own_series_prompts_anonymous_visitors(api):
    response = api.post("/series/4/create-own")
    assert response.json() == {"redirect": None, "showLoginPrompt": True}


def test_admin_routes_redirect_without_token(api):
    assert api.get("/admin/posts").json() == {"redirect": "/admin"}
    assert api.get("/admin/dashboard").json() == {"redirect": "/admin"}


def test_admin_login_refuses_non_admin(backend, api):
    backend.add("POST", "/auth/login", json={"token": make_token(id=9)})
    response = api.post("/admin/login", json={"email": "w@example.com", "password": "pw"})
    assert response.status_code == 400
    assert response.json()["detail"] == "You do not have access to the admin panel."
    assert "adminToken" not in response.cookies


def test_admin_users_table(backend, admin_api):
    backend.add("GET", "/users", json=[
        {"id": 1, "name": "Admin", "email": "admin@example.com", "create_at": "2024-01-01T00:00:00"},
        {"id": 2, "name": "Alice", "email": "alice@example.com", "create_at": "2024-06-01T00:00:00"},
        {"id": 3, "name": "Bob", "email": "bob@example.com", "create_at": "2024-09-01T00:00:00"},
    ])
    state = admin_api.get("/admin/users", params={"search": "EXAMPLE", "search_by": "email",
                                                  "create_at_from": "2024-05-01", "sort": "id",
                                                  "direction": "desc"}).json()
    assert [row["id"] for row in state["rows"]] == [3, 2]
    assert state["list"]["sort"] == {"key": "id", "direction": "desc"}


def test_admin_invalid_page_size(backend, admin_api):
    backend.add("GET", "/categories", json=[])
    response = admin_api.get("/admin/categories", params={"per_page": "0"})
    assert response.status_code == 400


def test_admin_unknown_section(admin_api):
    assert admin_api.get("/admin/widgets").status_code == 404


def test_admin_edit_post_title_only(backend, admin_api):
    backend.add("GET", "/users", json=[{"id": 5, "name": "Alice"}])
    backend.add("GET", "/categories", json=[])
    backend.add("GET", "/series/users/5", json=[])
    backend.add("GET", "/blogs/7", json={"id": 7, "title": "Old", "content": CONTENT, "authorId": 5})
    backend.add("PUT", "/blogs/7", json={"id": 7})
    response = admin_api.put("/admin/posts/edit/7", json={"title": "New"})
    assert response.json()["redirect"] == "/admin/posts"
    sent = body_of(backend.sent("PUT", "/blogs/7")[0])
    assert sent["title"] == "New"
    assert sent["content"] == CONTENT


def test_admin_delete_category(backend, admin_api):
    backend.add("GET", "/categories", json=[{"id": 1, "title": "Tech"}, {"id": 2, "title": "Life"}])
    backend.add("DELETE", "/categories/1", json={})
    state = admin_api.delete("/admin/categories/1").json()
    assert [row["id"] for row in state["rows"]] == [2]
    assert state["notice"] == "Category deleted successfully!"


def test_admin_logout_stays_put_by_default(admin_api):
    response = admin_api.post("/admin/logout")
    assert response.json() == {"redirect": None}
