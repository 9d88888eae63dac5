from streamchat.llm.service.model_catalog import dedupe, sort_models


def test_openai_newest_first():
    models = ["gpt-3.5-turbo", "gpt-4", "gpt-4o-mini", "gpt-4o", "gpt-4-turbo"]
    assert sort_models("openai", models) == ["gpt-4o", "gpt-4-turbo", "gpt-4", "gpt-4o-mini", "gpt-3.5-turbo"]


def test_gemini_prefers_version_then_tier():
    models = ["gemini-1.5-flash", "gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash-8b"]
    assert sort_models("gemini", models) == [
        "gemini-2.0-flash",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
        "gemini-1.5-flash-8b",
    ]


def test_groq_versioned_models_lead():
    models = ["mixtral-8x7b-32768", "llama-3.1-8b-instant", "llama3-70b-8192"]
    assert sort_models("groq", models)[:2] == ["llama-3.1-8b-instant", "llama3-70b-8192"]
    assert sort_models("groq", models)[-1] == "mixtral-8x7b-32768"


def test_ollama_keeps_discovery_order():
    assert sort_models("ollama", ["qwen3:8b", "llama3:latest"]) == ["qwen3:8b", "llama3:latest"]


def test_duplicates_and_blanks_dropped():
    assert dedupe(["a", "", "b", "a"]) == ["a", "b"]
    assert sort_models("openai", ["gpt-4", "gpt-4"]) == ["gpt-4"]
