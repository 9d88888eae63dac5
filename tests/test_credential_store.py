from streamchat.auth.credential_store import (
    ChainedCredentialStore,
    EnvCredentialStore,
    InMemoryCredentialStore,
)
from streamchat.core.config import Settings


def _settings(**keys):
    defaults = {"OPENAI_API_KEY": None, "GROQ_API_KEY": None, "GEMINI_API_KEY": None}
    return Settings(_env_file=None, **{**defaults, **keys})


def test_env_store_reads_api_key_settings():
    store = EnvCredentialStore(_settings(GEMINI_API_KEY="  g-key  ", GROQ_API_KEY="   "))
    assert store.get_credential("gemini").get_secret_value() == "g-key"
    assert store.get_credential("groq") is None
    assert store.get_credential("ollama") is None
    assert not store.has_credential("openai")


def test_secrets_are_masked():
    credential = InMemoryCredentialStore({"openai": "sk-secret"}).get_credential("openai")
    assert "sk-secret" not in repr(credential)
    assert "sk-secret" not in str(credential)


def test_in_memory_blank_value_deletes():
    store = InMemoryCredentialStore({"openai": "sk-1"})
    store.set_credential("openai", "")
    assert not store.has_credential("openai")
    assert store.delete_credential("openai") is False


def test_chained_store_prefers_runtime_credentials():
    runtime = InMemoryCredentialStore({"openai": "sk-runtime"})
    env = EnvCredentialStore(_settings(OPENAI_API_KEY="sk-env", GROQ_API_KEY="gsk-env"))
    chained = ChainedCredentialStore(runtime, env)

    assert chained.get_credential("openai").get_secret_value() == "sk-runtime"
    assert chained.get_credential("groq").get_secret_value() == "gsk-env"
    assert chained.get_credential("gemini") is None
