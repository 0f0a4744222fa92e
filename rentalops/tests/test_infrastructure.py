import pytest
import httpx
from fastapi import HTTPException

from rentalops.core import audit_log, rate_limit
from rentalops.core.config import settings
from rentalops.core.enums import AuditAction
from rentalops.models.audit import Audit
from rentalops.services import webhook
from rentalops.utils import idempotency
from rentalops.utils.hashing import cache_key, payload_hash


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def incr(self, key):
        self.store[key] = str(int(self.store[key]) + 1)


class BrokenRedis:
    async def get(self, key):
        raise ConnectionError("redis down")


class TestHashing:

    def test_key_order_irrelevant(self):
        assert payload_hash({"a": 1, "b": 2}) == payload_hash({"b": 2, "a": 1})

    def test_cache_key_prefix(self):
        key = cache_key("price", {"a": 1})
        assert key.startswith("price:")
        assert len(key) == len("price:") + 64


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_skipped_without_redis(self, monkeypatch):
        monkeypatch.setattr(rate_limit, "get_redis", lambda: None)
        await rate_limit.check_rate_limit(1)

    @pytest.mark.asyncio
    async def test_limit_enforced(self, monkeypatch):
        redis = FakeRedis()
        monkeypatch.setattr(rate_limit, "get_redis", lambda: redis)

        for _ in range(settings.RATE_LIMIT):
            await rate_limit.check_rate_limit(1)

        with pytest.raises(HTTPException) as exc:
            await rate_limit.check_rate_limit(1)
        assert exc.value.status_code == 429

        # other users keep their own budget
        await rate_limit.check_rate_limit(2)

    @pytest.mark.asyncio
    async def test_redis_errors_do_not_block(self, monkeypatch):
        monkeypatch.setattr(rate_limit, "get_redis", lambda: BrokenRedis())
        await rate_limit.check_rate_limit(1)


class TestIdempotency:

    @pytest.mark.asyncio
    async def test_flow(self, monkeypatch):
        redis = FakeRedis()
        monkeypatch.setattr(idempotency, "get_redis", lambda: redis)

        assert await idempotency.get_idempotent("key-1") is None
        await idempotency.set_idempotent("key-1", {"booking_code": "RB00000001"})
        assert await idempotency.get_idempotent("key-1") == {"booking_code": "RB00000001"}

    @pytest.mark.asyncio
    async def test_noop_without_redis(self, monkeypatch):
        monkeypatch.setattr(idempotency, "get_redis", lambda: None)

        await idempotency.set_idempotent("key-1", {"ok": True})
        assert await idempotency.get_idempotent("key-1") is None


class TestWebhook:

    @pytest.fixture
    def fake_transport(self, monkeypatch):
        calls = []
        statuses = []

        async def fake_post(self, url, json=None, **kwargs):
            calls.append(json)
            return httpx.Response(statuses.pop(0), request=httpx.Request("POST", url))

        async def no_sleep(delay):
            return None

        monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)
        monkeypatch.setattr(webhook.asyncio, "sleep", no_sleep)
        return calls, statuses

    @pytest.mark.asyncio
    async def test_delivered(self, fake_transport):
        calls, statuses = fake_transport
        statuses.extend([200])

        assert await webhook.send_webhook({"booking_id": 1, "event": "booking.completed"}) is True
        assert calls == [{"booking_id": 1, "event": "booking.completed"}]

    @pytest.mark.asyncio
    async def test_retried_then_delivered(self, fake_transport):
        calls, statuses = fake_transport
        statuses.extend([500, 502, 204])

        assert await webhook.send_webhook({"booking_id": 1}, retries=3) is True
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up(self, fake_transport):
        calls, statuses = fake_transport
        statuses.extend([500, 500])

        assert await webhook.send_webhook({"booking_id": 1}, retries=2) is False
        assert len(calls) == 2


class TestAuditLog:

    @pytest.mark.asyncio
    async def test_records_hash_and_note(self, fake_db):
        await audit_log.log_audit(
            fake_db, 3, AuditAction.WORKFLOW_BYPASS, {"kind": "status"}, entity_id=9, note="reason"
        )

        [record] = fake_db.of_type(Audit)
        assert record.user_id == 3
        assert record.action == "workflow_bypass"
        assert record.entity_id == 9
        assert record.note == "reason"
        assert record.payload_hash == payload_hash({"kind": "status"})

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        class ExplodingSession:
            def add(self, obj):
                raise RuntimeError("db gone")

        await audit_log.log_audit(ExplodingSession(), 1, AuditAction.LOGIN)
        assert "Audit logging failed" in caplog.text

    @pytest.mark.asyncio
    async def test_login(self, fake_db):
        await audit_log.log_login(fake_db, 4, "jane")
        assert fake_db.of_type(Audit)[0].action == "login"
