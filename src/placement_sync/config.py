"""Configuration settings for PlacementSync."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLACEMENT_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///placement_sync.db"
    database_echo: bool = False

    # ── Transfer execution ───────────────────────────────────────────────────
    # New dispatchers start on the optimized (target-outer) path. A faulting
    # batch disables it for the lifetime of that dispatcher only.
    transfer_use_optimized: bool = True

    # Skip writes whose current value already matches the resolved value
    transfer_skip_unchanged: bool = True

    # Pre-resolve target attribute handles in bulk before the per-target loop
    transfer_batch_lookups: bool = True

    # Text attributes are truncated to this many characters on write
    transfer_text_max_length: int = 255

    # Append-only diagnostics log. None disables the file sink.
    transfer_log_path: str | None = None

    # ── Snapshot capture ─────────────────────────────────────────────────────
    # Upper bound on optional (non must-capture) attributes kept per bag
    snapshot_max_attributes: int = 30


settings = Settings()
