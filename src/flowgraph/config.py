import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .workflow.schema import ExecutionOrderMode


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWGRAPH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Graph model
    # ------------------------------------------------------------------
    # "topological": Kahn ordering, a node is emitted after all its inputs,
    #                 cycles raise WorkflowCycleError
    # "dfs":         legacy depth-first pre-order from start nodes
    execution_order_mode: ExecutionOrderMode = ExecutionOrderMode.TOPOLOGICAL

    # ------------------------------------------------------------------
    # Variable resolver
    # ------------------------------------------------------------------
    # Log unresolved placeholders at WARNING instead of DEBUG
    resolver_strict_logging: bool = False

    # ------------------------------------------------------------------
    # Store / logging
    # ------------------------------------------------------------------
    store_dir: Optional[str] = None  # defaults to ./workflows when unset
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the configured log level to the ``flowgraph`` logger tree."""
    settings = settings or get_settings()
    logging.getLogger("flowgraph").setLevel(settings.log_level.upper())
