import os
from types import SimpleNamespace
from typing import Any, Dict, Optional

# Configure the environment before any makeup_atelier module reads it
os.environ["LOG_FILE"] = ""
os.environ["SUPABASE_URL"] = "https://example.supabase.co"
os.environ["SUPABASE_SERVICE_KEY"] = "service-role-key"
os.environ["IMAGE_PROVIDER"] = "replicate"
os.environ["REPLICATE_API_TOKEN"] = "r8_test"
os.environ["GEMINI_KEY"] = "gemini-test"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["USER_DAILY_TRYON_LIMIT"] = "4"
os.environ["ANON_DAILY_TRYON_LIMIT"] = "3"
os.environ["IP_RATE_LIMIT_USER"] = "20"
os.environ["IP_RATE_LIMIT_ANON"] = "5"
os.environ["COOKIE_SECURE"] = "false"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["CORS_ORIGINS"] = "*"

import pytest
from fastapi.testclient import TestClient

from makeup_atelier import db
from makeup_atelier.core import generation, rate_limit


# 1x1 transparent PNG
PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
PNG_DATA_URI = f"data:image/png;base64,{PNG_B64}"

VALID_TOKEN = "valid-token"
USER = {"id": "user-1", "email": "ada@example.com"}


class _Result:
    def __init__(self, data: Any) -> None:
        self.data = data


class _Call:
    def __init__(self, fn) -> None:
        self._fn = fn

    def execute(self) -> _Result:
        return _Result(self._fn())


class _Table:
    def __init__(self, store: Dict[str, Dict[str, Any]]) -> None:
        self._store = store
        self._filter: Optional[str] = None
        self._insert: Optional[Dict[str, Any]] = None

    def select(self, *_args, **_kwargs) -> "_Table":
        return self

    def eq(self, column: str, value: str) -> "_Table":
        assert column == "id"
        self._filter = value
        return self

    def insert(self, row: Dict[str, Any]) -> "_Table":
        self._insert = row
        return self

    def execute(self) -> _Result:
        if self._insert is not None:
            row = {"created_at": "2026-10-18T00:00:00+00:00", **self._insert}
            self._store[row["id"]] = row
            return _Result([row])
        row = self._store.get(self._filter)
        return _Result([row] if row else [])


class FakeSupabase:
    """In-memory stand-in for the quota RPCs, profiles table and auth."""

    def __init__(self) -> None:
        self.user_usage: Dict[str, int] = {}
        self.anon_usage: Dict[str, int] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.calls: list = []
        self.fail_rpcs: set = set()
        self.auth = SimpleNamespace(get_user=self._get_user)

    def _get_user(self, token: str):
        if token != VALID_TOKEN:
            raise Exception("invalid JWT")
        return SimpleNamespace(
            user=SimpleNamespace(
                id=USER["id"], email=USER["email"], created_at="2026-01-01"
            )
        )

    def table(self, name: str) -> _Table:
        assert name == "profiles"
        return _Table(self.profiles)

    def rpc(self, name: str, params: Dict[str, Any]) -> _Call:
        self.calls.append((name, params))
        if name in self.fail_rpcs:
            def boom():
                raise Exception(f"{name} unavailable")
            return _Call(boom)
        return _Call(lambda: getattr(self, f"_rpc_{name}")(**params))

    @staticmethod
    def _reserve(store: Dict[str, int], key: str, daily_limit: int) -> Dict[str, Any]:
        count = store.get(key, 0)
        allowed = count < daily_limit
        if allowed:
            count += 1
            store[key] = count
        return {
            "allowed": allowed,
            "count": count,
            "limit": daily_limit,
            "remaining": max(0, daily_limit - count),
        }

    def _rpc_check_and_increment_tryons(self, p_user_id, daily_limit):
        return self._reserve(self.user_usage, p_user_id, daily_limit)

    def _rpc_check_and_increment_tryons_anon(self, p_anon_id, daily_limit):
        return self._reserve(self.anon_usage, p_anon_id, daily_limit)

    def _rpc_decrement_tryons(self, p_user_id):
        self.user_usage[p_user_id] = max(0, self.user_usage.get(p_user_id, 0) - 1)

    def _rpc_decrement_tryons_anon(self, p_anon_id):
        self.anon_usage[p_anon_id] = max(0, self.anon_usage.get(p_anon_id, 0) - 1)

    def _rpc_get_tryon_usage(self, p_user_id):
        return {"count": self.user_usage.get(p_user_id, 0), "date": "2026-10-18"}

    def _rpc_get_tryon_usage_anon(self, p_anon_id):
        return {"count": self.anon_usage.get(p_anon_id, 0), "date": "2026-10-18"}

    def _balance(self, user_id: str) -> int:
        return self.profiles.get(user_id, {}).get("paid_tries_remaining", 0)

    def _rpc_consume_paid_tryon(self, p_user_id):
        balance = self._balance(p_user_id)
        if balance <= 0:
            return {"allowed": False, "paid_remaining": 0}
        self.profiles[p_user_id]["paid_tries_remaining"] = balance - 1
        return {"allowed": True, "paid_remaining": balance - 1}

    def _rpc_refund_paid_tryon(self, p_user_id):
        if p_user_id in self.profiles:
            self.profiles[p_user_id]["paid_tries_remaining"] += 1

    def _rpc_add_paid_tryons(self, p_user_id, p_tries):
        profile = self.profiles.setdefault(
            p_user_id,
            {"id": p_user_id, "email": "", "free_tries_used": 0, "paid_tries_remaining": 0},
        )
        profile["paid_tries_remaining"] += p_tries
        return {"paid_remaining": profile["paid_tries_remaining"]}


@pytest.fixture
def fake_supabase(monkeypatch) -> FakeSupabase:
    fake = FakeSupabase()
    monkeypatch.setattr(db, "_supabase_client", fake)
    return fake


@pytest.fixture(autouse=True)
def reset_ip_limiter():
    rate_limit.ip_limiter.reset()
    yield
    rate_limit.ip_limiter.reset()


@pytest.fixture
def provider_calls(monkeypatch):
    """Replace the Replicate runner with a stub that records its inputs."""
    calls = []

    async def fake_runner(prompt, lipstick_image, selfie_image):
        calls.append(
            {"prompt": prompt, "lipstick": lipstick_image, "selfie": selfie_image}
        )
        return "https://replicate.delivery/result.png"

    monkeypatch.setitem(generation.PROVIDERS, "replicate", fake_runner)
    return calls


@pytest.fixture
def failing_provider(monkeypatch):
    """Return a setter that makes the Replicate runner raise the given error."""

    def install(error: Exception) -> None:
        async def fake_runner(prompt, lipstick_image, selfie_image):
            raise error

        monkeypatch.setitem(generation.PROVIDERS, "replicate", fake_runner)

    return install


@pytest.fixture
def client(fake_supabase) -> TestClient:
    from makeup_atelier.main import app

    return TestClient(app)


def tryon_body(**overrides) -> Dict[str, Any]:
    body = {"lipstickImage": PNG_DATA_URI, "selfieImage": PNG_DATA_URI}
    body.update(overrides)
    return body


def auth_headers(token: str = VALID_TOKEN) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
