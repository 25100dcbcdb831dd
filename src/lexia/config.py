"""Environment-driven settings for the LexIA server."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration loaded from ``LEXIA_``-prefixed environment
    variables or a ``.env`` file.

    LLM API keys are deliberately absent: they belong to the browser user and
    travel through the credential store, never through the server environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEXIA_", env_file=".env", extra="ignore"
    )

    store_backend: Literal["memory", "sqlite", "supabase"] = "memory"
    """Where message history is persisted."""

    sqlite_path: str = "lexia.db"
    """Database file used when ``store_backend`` is ``sqlite``."""

    auth_backend: Literal["single", "supabase"] = "single"
    """How users sign in."""

    supabase_url: Optional[str] = None
    """Project URL of the Supabase backend."""

    supabase_key: Optional[str] = None
    """Supabase API key. The message store queries as this key and filters by the
    verified user id, so use the service role key when RLS is enabled."""

    supabase_table: str = "messages"
    """Table holding message rows."""

    openai_model: str = "gpt-4o"
    """Model used for the chat-completion provider."""

    gemini_model: str = "gemini-2.0-flash"
    """Model used for the generate-content provider."""

    reload_history: bool = True
    """Re-read the history from the store after saving each user message."""

    host: str = "127.0.0.1"
    port: int = 8050
    debug: bool = False

    log_level: str = "INFO"
    """Root logging level for ``python -m lexia``."""


settings = Settings()
