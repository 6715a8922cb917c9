"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources (in priority order):

  1. **Environment variables** -- e.g. ``OPENAI_API_KEY=sk-abc123``
  2. **.env file** -- key=value lines in the project root ``.env`` file

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY`` automatically.
Defaults apply when neither source sets a field.  Pipeline tuning values
(chunk size, batch size, thresholds) live in ``config/config.yaml`` and are
merged by :func:`initiative_rag.config.loader.load_config`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """initiative-rag application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Embedding / completion providers ===
    # Empty key = "not configured"; main.py then falls back to Ollama.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-small"
    openai_chat_model: str = "gpt-4o-mini"
    ollama_base_url: str = "http://localhost:11434"
    ollama_chat_model: str = "llama3.1"
    request_timeout_seconds: float = 25.0

    # === Storage ===
    database_path: str = "data/initiatives.db"
    chunk_store_backend: str = "sqlite"  # "sqlite" | "chromadb"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "initiative_chunks"
    attachments_dir: str = "data/attachments"

    # === Signing (sessions + download URLs) ===
    signing_secret: str = "change-me"
    session_max_age_hours: int = 168
    public_base_url: str = "http://localhost:8000"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "*"

    def get_cors_origins(self) -> list[str]:
        """Return ``cors_origins`` split on commas, blanks dropped."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
