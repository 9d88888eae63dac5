import os
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global configuration for environment variables."""

    APP_NAME: str = "StreamChat"
    ENV: str = os.getenv("ENV", "development")

    # Local API
    HOST: str = "127.0.0.1"
    PORT: int = 8765

    LOG_LEVEL: str = "INFO"

    # API Keys (env-backed credential store)
    OPENAI_API_KEY: str | None = None
    GROQ_API_KEY: str | None = None
    GEMINI_API_KEY: str | None = None

    # Endpoints
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    OLLAMA_BASE_URL: str = "http://localhost:11434"

    # Persistence
    STORAGE_BACKEND: str = "file"  # Options: "file", "redis", "memory"
    STORAGE_PATH: str = "~/.streamchat/store.json"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str | None = None
    REDIS_PREFIX: str = "streamchat:"

    # Generation
    CONTEXT_WINDOW_MESSAGES: int = 6
    TEMPERATURE: float = 0.7
    MAX_OUTPUT_TOKENS: int = 2000
    MODEL_DISCOVERY_TIMEOUT_S: float = 10.0

    # Title synthesis
    TITLE_MODEL: str | None = None
    TITLE_MAX_LENGTH: int = 80

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
