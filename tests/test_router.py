import pytest

from streamchat.llm.exceptions import NetworkError, NoModelSelectedError, UnknownProviderError
from streamchat.llm.service.router_service import ProviderRouter, SelectOutcome


@pytest.mark.asyncio
async def test_select_provider_without_credential_needs_setup(router, store):
    assert await router.select_provider("openai") == SelectOutcome.SWITCHED

    assert await router.select_provider("groq") == SelectOutcome.NEEDS_SETUP
    assert router.selected_provider_id == "openai"
    assert router.selected_model == "gpt-4o"
    assert await store.get("selected_provider") == "openai"


@pytest.mark.asyncio
async def test_select_provider_picks_default_model(router, credentials, store):
    credentials.set_credential("groq", "gsk-test")
    await router.select_provider("openai")

    assert await router.select_provider("groq") == SelectOutcome.SWITCHED
    assert router.selected_model == "mixtral-8x7b-32768"
    assert await store.get("selected_model") == "mixtral-8x7b-32768"


@pytest.mark.asyncio
async def test_select_provider_keeps_model_present_in_catalog(router):
    await router.select_provider("openai")
    await router.select_model("gpt-4")

    await router.select_provider("openai")
    assert router.selected_model == "gpt-4"


@pytest.mark.asyncio
async def test_default_skips_disabled_models(router):
    await router.toggle_model("openai", "gpt-4o")
    await router.select_provider("openai")
    assert router.selected_model == router.enabled_models("openai")[0]
    assert router.selected_model != "gpt-4o"


@pytest.mark.asyncio
async def test_local_provider_discovers_catalog_on_select(router, adapters):
    adapters["ollama"].models = ["qwen3:8b", "llama3.2:latest"]

    assert await router.select_provider("ollama") == SelectOutcome.SWITCHED
    assert router.catalog("ollama") == ["qwen3:8b", "llama3.2:latest"]
    assert router.selected_model == "qwen3:8b"


@pytest.mark.asyncio
async def test_refresh_models_falls_back_on_failure(router, adapters, credentials):
    credentials.set_credential("gemini", "g-key")
    adapters["gemini"].list_error = NetworkError("offline")

    models = await router.refresh_models("gemini")
    assert models == ["gemini-1.5-pro", "gemini-1.5-flash"]


@pytest.mark.asyncio
async def test_refresh_models_sorts_discovered_models(router, adapters, credentials):
    credentials.set_credential("gemini", "g-key")
    adapters["gemini"].models = ["gemini-1.5-flash", "gemini-2.0-flash", "gemini-1.5-pro", "gemini-2.0-flash"]

    assert await router.refresh_models("gemini") == ["gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash"]


@pytest.mark.asyncio
async def test_refresh_without_listing_uses_candidates(router):
    assert await router.refresh_models("openai") == ["gpt-4o", "gpt-4", "gpt-3.5-turbo"]


@pytest.mark.asyncio
async def test_enabled_preferences_persist(router, store):
    assert await router.toggle_model("openai", "gpt-4") is False
    assert router.is_model_enabled("openai", "gpt-4") is False
    assert (await store.get("enabled_models"))["openai"]["gpt-4"] is False

    await router.disable_all_models("openai")
    assert router.enabled_models("openai") == []
    await router.enable_all_models("openai")
    assert router.enabled_models("openai") == ["gpt-4o", "gpt-4", "gpt-3.5-turbo"]


@pytest.mark.asyncio
async def test_load_restores_selection_and_preferences(registry, adapters, credentials, store):
    await store.set("selected_provider", "openai")
    await store.set("selected_model", "gpt-4")
    await store.set("enabled_models", {"openai": {"gpt-4o": False}})

    router = ProviderRouter(registry, adapters, credentials, store)
    await router.load()

    assert router.resolve() == ("openai", "gpt-4")
    assert router.is_model_enabled("openai", "gpt-4o") is False


@pytest.mark.asyncio
async def test_load_ignores_unknown_provider(registry, adapters, credentials, store):
    await store.set("selected_provider", "bard")
    router = ProviderRouter(registry, adapters, credentials, store)
    await router.load()

    assert router.selected_provider_id is None
    with pytest.raises(NoModelSelectedError):
        router.resolve()


def test_available_providers(router, credentials):
    assert [d.id for d in router.available_providers()] == ["openai", "ollama"]
    credentials.set_credential("gemini", "g-key")
    assert [d.id for d in router.available_providers()] == ["openai", "gemini", "ollama"]


@pytest.mark.asyncio
async def test_unknown_provider_raises(router):
    with pytest.raises(UnknownProviderError):
        await router.select_provider("nope")


@pytest.mark.asyncio
async def test_stream_passes_credential_only_when_required(router, adapters):
    adapters["openai"].script(["a", "b"])
    adapters["ollama"].script(["c"])

    deltas = [d async for d in router.stream([], "openai", "gpt-4o")]
    assert deltas == ["a", "b"]
    assert adapters["openai"].calls[0]["credential"].get_secret_value() == "sk-test"

    assert [d async for d in router.stream([], "ollama", "llama3")] == ["c"]
    assert adapters["ollama"].calls[0]["credential"] is None
