"""Tests for the failover executor."""

import pytest

from conftest import FakeAdapter, make_config
from reqagent.core.exceptions import NoProviderAvailable, ProviderExhausted
from reqagent.models.schemas import LogStatus, ProviderConfig, ProviderKind
from reqagent.providers.base import ChatMessage, ExecutionRequest
from reqagent.providers.manager import ENV_PROVIDER_ID, ProviderManager, estimate_openai_cost


def hello_request(**kwargs) -> ExecutionRequest:
    return ExecutionRequest(messages=[ChatMessage(role="user", content="hello")], **kwargs)


class TestRefresh:
    """Tests for building the registry from the store."""

    @pytest.mark.asyncio
    async def test_sorted_by_priority_descending(self, store, manager):
        store.provider_configs = [
            ProviderConfig(id="low", name="low", kind=ProviderKind.OLLAMA, models="m", priority=1),
            ProviderConfig(id="high", name="high", kind=ProviderKind.OLLAMA, models="m", priority=10),
            ProviderConfig(id="mid-a", name="mid-a", kind=ProviderKind.OLLAMA, models="m", priority=5),
            ProviderConfig(id="mid-b", name="mid-b", kind=ProviderKind.OLLAMA, models="m", priority=5),
        ]
        count = await manager.refresh()

        assert count == 4
        assert [p.config.id for p in manager.providers] == ["high", "mid-a", "mid-b", "low"]

    @pytest.mark.asyncio
    async def test_inactive_and_invalid_configs_are_skipped(self, store, manager):
        store.provider_configs = [
            ProviderConfig(id="off", name="off", kind=ProviderKind.OLLAMA, is_active=False),
            # vLLM without endpoint cannot be built
            ProviderConfig(id="broken", name="broken", kind=ProviderKind.VLLM),
            ProviderConfig(id="ok", name="ok", kind=ProviderKind.OLLAMA, models="m"),
        ]
        assert await manager.refresh() == 1
        assert manager.providers[0].config.id == "ok"

    @pytest.mark.asyncio
    async def test_env_fallback(self, store, log_sink):
        manager = ProviderManager(store, log_sink=log_sink, fallback_api_key="sk-env")
        assert await manager.refresh() == 1

        adapter = manager.providers[0]
        assert adapter.config.id == ENV_PROVIDER_ID
        assert adapter.kind == ProviderKind.OPENAI
        assert adapter.config.api_key == "sk-env"

    @pytest.mark.asyncio
    async def test_empty_without_fallback(self, manager):
        assert await manager.refresh() == 0
        with pytest.raises(NoProviderAvailable):
            manager.active_provider()

    @pytest.mark.asyncio
    async def test_refresh_swaps_snapshot(self, store, manager):
        store.provider_configs = [ProviderConfig(id="a", name="a", kind=ProviderKind.OLLAMA, models="m")]
        await manager.refresh()
        snapshot = manager.providers

        store.provider_configs = []
        await manager.refresh()

        assert len(snapshot) == 1
        assert manager.providers == ()


class TestExecute:
    """Tests for ordered failover."""

    @pytest.mark.asyncio
    async def test_failover_to_first_healthy_provider(self, store, manager):
        first = FakeAdapter(make_config("p3", priority=3), error="timeout")
        second = FakeAdapter(make_config("p2", priority=2), content="from p2")
        third = FakeAdapter(make_config("p1", priority=1), content="from p1")
        manager.set_providers([first, second, third])

        result = await manager.execute(hello_request(), context="TEST")
        await manager.log_sink.flush()

        assert result.content == "from p2"
        assert result.provider_name == "p2"
        assert len(first.calls) == 1
        assert len(second.calls) == 1
        assert third.calls == []

        logs = store.execution_logs
        assert [(e.provider_name, e.status) for e in logs] == [
            ("p3", LogStatus.FAILED),
            ("p2", LogStatus.SUCCESS),
        ]
        assert logs[0].error_message == "timeout"
        assert logs[1].total_tokens == 15
        assert all(e.context == "TEST" for e in logs)

    @pytest.mark.asyncio
    async def test_all_providers_fail(self, store, manager):
        manager.set_providers([
            FakeAdapter(make_config("a", 2), error="boom a"),
            FakeAdapter(make_config("b", 1), error="boom b"),
        ])

        with pytest.raises(ProviderExhausted) as exc_info:
            await manager.execute(hello_request())
        await manager.log_sink.flush()

        assert exc_info.value.attempts == 2
        assert "boom b" in str(exc_info.value)
        assert [e.status for e in store.execution_logs] == [LogStatus.FAILED, LogStatus.FAILED]

    @pytest.mark.asyncio
    async def test_no_providers(self, manager):
        with pytest.raises(NoProviderAvailable):
            await manager.execute(hello_request())

    @pytest.mark.asyncio
    async def test_global_settings_fill_missing_values(self, store, manager):
        store.settings = {"ai.model": "global-model", "ai.temperature": "0.25"}
        adapter = FakeAdapter(make_config("a"))
        manager.set_providers([adapter])

        result = await manager.execute(hello_request())

        sent = adapter.calls[0]
        assert sent.model == "global-model"
        assert sent.temperature == 0.25
        assert result.resolved_model == "global-model"

    @pytest.mark.asyncio
    async def test_request_values_win_over_global_settings(self, store, manager):
        store.settings = {"ai.model": "global-model", "ai.temperature": "0.25"}
        adapter = FakeAdapter(make_config("a"))
        manager.set_providers([adapter])

        await manager.execute(hello_request(model="explicit", temperature=0.9))

        assert adapter.calls[0].model == "explicit"
        assert adapter.calls[0].temperature == 0.9

    @pytest.mark.asyncio
    async def test_zero_temperature_setting_is_applied(self, store, manager):
        store.settings = {"ai.temperature": "0"}
        adapter = FakeAdapter(make_config("a"))
        manager.set_providers([adapter])

        await manager.execute(hello_request())

        assert adapter.calls[0].temperature == 0.0

    @pytest.mark.asyncio
    async def test_malformed_temperature_keeps_global_model(self, store, manager):
        store.settings = {"ai.model": "global-model", "ai.temperature": "hot"}
        adapter = FakeAdapter(make_config("a"))
        manager.set_providers([adapter])

        await manager.execute(hello_request())

        assert adapter.calls[0].model == "global-model"
        assert adapter.calls[0].temperature is None

    @pytest.mark.asyncio
    async def test_provider_default_model_used_without_settings(self, manager):
        adapter = FakeAdapter(make_config("a"))
        manager.set_providers([adapter])

        result = await manager.execute(hello_request())

        assert adapter.calls[0].model is None
        assert result.resolved_model == "fake-model"


class TestMonitoring:
    """Tests for per-provider status counters."""

    @pytest.mark.asyncio
    async def test_counters(self, manager):
        bad = FakeAdapter(make_config("bad", 2), error="down")
        good = FakeAdapter(make_config("good", 1))
        manager.set_providers([bad, good])

        await manager.execute(hello_request())
        await manager.execute(hello_request())

        statuses = {s.name: s for s in manager.get_provider_statuses()}
        assert statuses["bad"].failure_count == 2
        assert statuses["bad"].last_error == "down"
        assert statuses["good"].success_count == 2
        assert statuses["good"].total_tokens_used == 30
        assert statuses["good"].last_used is not None

    @pytest.mark.asyncio
    async def test_check_all_health(self, manager):
        manager.set_providers([
            FakeAdapter(make_config("up")),
            FakeAdapter(make_config("down"), error="unreachable"),
        ])
        results = await manager.check_all_health()

        assert [(s.name, s.is_healthy) for s in results] == [("up", True), ("down", False)]
        assert all(s.last_checked is not None for s in results)

    def test_estimate_openai_cost(self):
        assert estimate_openai_cost("gpt-4", 1000, 1000) == pytest.approx(0.09)
        assert estimate_openai_cost("gpt-4-turbo-preview", 1000, 0) == pytest.approx(0.01)
        assert estimate_openai_cost("gpt-3.5-turbo", 2000, 2000) == pytest.approx(0.004)
