from makeup_atelier.core.auth import parse_bearer_token

from .conftest import USER, auth_headers


def test_parse_bearer_token():
    assert parse_bearer_token("Bearer abc") == "abc"
    assert parse_bearer_token("bearer abc") == "abc"
    assert parse_bearer_token("Basic abc") is None
    assert parse_bearer_token("Bearer") is None
    assert parse_bearer_token(None) is None


def test_me_requires_token(client):
    assert client.get("/api/v1/auth/me").status_code == 401


def test_me_rejects_malformed_header(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Token abc"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid authorization header format"


def test_me_rejects_unknown_token(client):
    response = client.get("/api/v1/auth/me", headers=auth_headers("stale"))

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_me_creates_profile_on_first_visit(client, fake_supabase):
    fake_supabase.user_usage[USER["id"]] = 1

    response = client.get("/api/v1/auth/me", headers=auth_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["id"] == USER["id"]
    assert body["profile"]["email"] == USER["email"]
    assert body["profile"]["paid_tries_remaining"] == 0
    assert body["usage"]["count"] == 1
    assert body["usage"]["remaining"] == 3
    assert USER["id"] in fake_supabase.profiles


def test_me_returns_existing_profile(client, fake_supabase):
    fake_supabase.profiles[USER["id"]] = {
        "id": USER["id"],
        "email": USER["email"],
        "free_tries_used": 0,
        "paid_tries_remaining": 7,
    }

    body = client.get("/api/v1/auth/me", headers=auth_headers()).json()

    assert body["profile"]["paid_tries_remaining"] == 7


def test_me_survives_usage_outage(client, fake_supabase):
    fake_supabase.fail_rpcs.add("get_tryon_usage")

    response = client.get("/api/v1/auth/me", headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["usage"] is None


def test_auth_health(client):
    assert client.get("/api/v1/auth/health").json()["status"] == "healthy"
