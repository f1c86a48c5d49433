import asyncio

import pytest

from makeup_atelier.core import quota
from makeup_atelier.core.errors import QuotaBackendError
from makeup_atelier.core.quota import QuotaStatus, Reservation


def run(coro):
    return asyncio.run(coro)


def test_reservation_stops_at_limit_without_incrementing(fake_supabase):
    statuses = [run(quota.reserve_anon_tryon("a" * 32, 3)) for _ in range(4)]

    assert [s.allowed for s in statuses] == [True, True, True, False]
    assert [s.count for s in statuses] == [1, 2, 3, 3]
    assert statuses[-1].remaining == 0
    assert fake_supabase.anon_usage["a" * 32] == 3


def test_user_reservation_passes_user_id_and_limit(fake_supabase):
    status = run(quota.reserve_user_tryon("user-1", 4))

    assert status == QuotaStatus(allowed=True, count=1, limit=4, remaining=3)
    assert fake_supabase.calls[-1] == (
        "check_and_increment_tryons",
        {"p_user_id": "user-1", "daily_limit": 4},
    )


def test_refund_floors_at_zero(fake_supabase):
    run(quota.reserve_user_tryon("user-1", 4))

    assert run(quota.refund_reservation(Reservation("user", "user-1", None)))
    assert run(quota.refund_reservation(Reservation("user", "user-1", None)))
    assert fake_supabase.user_usage["user-1"] == 0


def test_refund_routes_by_reservation_kind(fake_supabase):
    fake_supabase.profiles["user-1"] = {"id": "user-1", "paid_tries_remaining": 0}

    run(quota.refund_reservation(Reservation("anon", "anon-id-0123456789", None)))
    run(quota.refund_reservation(Reservation("paid", "user-1", None)))

    names = [name for name, _ in fake_supabase.calls]
    assert names == ["decrement_tryons_anon", "refund_paid_tryon"]
    assert fake_supabase.profiles["user-1"]["paid_tries_remaining"] == 1


def test_refund_failure_is_swallowed(fake_supabase):
    fake_supabase.fail_rpcs.add("decrement_tryons")

    assert run(quota.refund_reservation(Reservation("user", "user-1", None))) is False


def test_rpc_failure_raises_backend_error(fake_supabase):
    fake_supabase.fail_rpcs.add("check_and_increment_tryons_anon")

    with pytest.raises(QuotaBackendError) as exc_info:
        run(quota.reserve_anon_tryon("a" * 32, 3))

    assert "unavailable" in exc_info.value.details


def test_read_only_usage_does_not_increment(fake_supabase):
    fake_supabase.user_usage["user-1"] = 2

    status = run(quota.get_user_usage("user-1", 4))

    assert status == QuotaStatus(allowed=True, count=2, limit=4, remaining=2)
    assert fake_supabase.user_usage["user-1"] == 2


def test_usage_at_limit_reports_not_allowed(fake_supabase):
    fake_supabase.anon_usage["b" * 32] = 3

    status = run(quota.get_anon_usage("b" * 32, 3))

    assert not status.allowed
    assert status.remaining == 0


def test_list_payload_is_accepted():
    status = quota._parse_status(
        "check_and_increment_tryons",
        [{"allowed": True, "count": 1, "limit": 4}],
        4,
    )
    assert status.remaining == 3


@pytest.mark.parametrize("payload", [None, [], "ok", {"allowed": True}, {"count": "x"}])
def test_malformed_payload_raises(payload):
    with pytest.raises(QuotaBackendError):
        quota._parse_status("check_and_increment_tryons", payload, 4)


def test_paid_tryons_consume_and_credit(fake_supabase):
    assert run(quota.consume_paid_tryon("user-1")) is None

    assert run(quota.add_paid_tryons("user-1", 20)) == 20
    assert run(quota.consume_paid_tryon("user-1")) == 19
