"""Tests for notification payloads, channels and the circuit breaker."""

import json
from datetime import datetime, timezone

import httpx
import pytest
import respx

from cafewatch.monitor.schemas import ContentItem, SourceDescriptor
from cafewatch.notify.channels import (
    CircuitBreaker,
    CircuitState,
    LogNotifier,
    Notifier,
    WebhookNotifier,
)
from cafewatch.notify.schemas import NotificationPayload

WEBHOOK_URL = "https://hooks.example.com/cafe"


# ── Fixtures ────────────────────────────────────────────


@pytest.fixture
def payload() -> NotificationPayload:
    source = SourceDescriptor(
        source_id=7,
        platform="cafe",
        author_handle="gildong",
        group_id="10050146",
        display_name="홍길동",
        profile_image_url="https://img.example.com/p.png",
    )
    item = ContentItem(
        id="12350",
        title="두번째 글",
        url="https://cafe.naver.com/f-e/cafes/10050146/articles/12350",
        author="홍길동",
        published_at=datetime(2025, 8, 4, 3, 0, tzinfo=timezone.utc),
    )
    return NotificationPayload.for_item(source, item)


class FlakyChannel(Notifier):
    """Channel whose results are scripted per call."""

    def __init__(self, results: list[bool]) -> None:
        self._results = list(results)
        self.calls = 0

    @property
    def name(self) -> str:
        return "flaky"

    async def deliver(self, payload) -> bool:
        self.calls += 1
        return self._results.pop(0) if self._results else False


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ── NotificationPayload ─────────────────────────────────


class TestNotificationPayload:
    """Tests for NotificationPayload.for_item."""

    def test_fields(self, payload):
        assert payload.unique_key == "cafe_홍길동_12350"
        assert payload.title == "💬 홍길동님의 카페 글"
        assert payload.body == "두번째 글"
        assert payload.icon_url == "https://img.example.com/p.png"
        assert payload.metadata == {"author": "홍길동"}

    def test_to_dict_is_json_safe(self, payload):
        data = json.loads(json.dumps(payload.to_dict(), ensure_ascii=False))
        assert data["published_at"] == "2025-08-04T03:00:00+00:00"
        assert data["source_id"] == 7


# ── WebhookNotifier ─────────────────────────────────────


class TestWebhookNotifier:
    """Tests for WebhookNotifier."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_successful_send(self, payload):
        route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(204))

        assert await WebhookNotifier(WEBHOOK_URL, headers={"X-Token": "t"}).deliver(payload) is True

        request = route.calls.last.request
        assert request.headers["X-Token"] == "t"
        body = json.loads(request.content)
        assert body["unique_key"] == "cafe_홍길동_12350"
        assert body["url"].endswith("/12350")

    @pytest.mark.asyncio
    @respx.mock
    async def test_failure_on_500(self, payload):
        respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(500))
        assert await WebhookNotifier(WEBHOOK_URL).deliver(payload) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self, payload):
        respx.post(WEBHOOK_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        assert await WebhookNotifier(WEBHOOK_URL).deliver(payload) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error(self, payload):
        respx.post(WEBHOOK_URL).mock(side_effect=httpx.ConnectError("refused"))
        assert await WebhookNotifier(WEBHOOK_URL).deliver(payload) is False

    def test_name(self):
        assert WebhookNotifier(WEBHOOK_URL).name == "webhook"


class TestLogNotifier:
    """Tests for LogNotifier."""

    @pytest.mark.asyncio
    async def test_always_succeeds(self, payload, caplog):
        caplog.set_level("INFO", logger="cafewatch.notify.channels")
        assert await LogNotifier().deliver(payload) is True
        assert "두번째 글" in caplog.text


# ── CircuitBreaker ──────────────────────────────────────


class TestCircuitBreaker:
    """Tests for CircuitBreaker."""

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, payload):
        inner = FlakyChannel([False] * 3)
        breaker = CircuitBreaker(inner, failure_threshold=3, recovery_timeout=60)

        for _ in range(3):
            assert await breaker.deliver(payload) is False

        assert breaker.state is CircuitState.OPEN
        assert await breaker.deliver(payload) is False
        assert inner.calls == 3

    @pytest.mark.asyncio
    async def test_success_resets_failures(self, payload):
        inner = FlakyChannel([False, True, False])
        breaker = CircuitBreaker(inner, failure_threshold=2)

        for _ in range(3):
            await breaker.deliver(payload)

        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_probe_success_closes(self, payload):
        clock = FakeClock()
        inner = FlakyChannel([False, True])
        breaker = CircuitBreaker(inner, failure_threshold=1, recovery_timeout=60, clock=clock)

        await breaker.deliver(payload)
        assert breaker.state is CircuitState.OPEN

        clock.now += 61
        assert await breaker.deliver(payload) is True
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_probe_failure_reopens(self, payload):
        clock = FakeClock()
        inner = FlakyChannel([False, False])
        breaker = CircuitBreaker(inner, failure_threshold=1, recovery_timeout=60, clock=clock)

        await breaker.deliver(payload)
        clock.now += 61
        assert await breaker.deliver(payload) is False
        assert breaker.state is CircuitState.OPEN

        # Recovery window restarts from the failed probe
        clock.now += 30
        assert await breaker.deliver(payload) is False
        assert inner.calls == 2

    def test_name_passthrough(self):
        assert CircuitBreaker(LogNotifier()).name == "log"
