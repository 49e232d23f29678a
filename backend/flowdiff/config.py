"""Runtime settings loaded from environment variables."""

import os
from functools import lru_cache

from pydantic import BaseModel

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Settings for the diff service and CLI."""

    log_level: str = "INFO"
    # Batch bound enforced by callers before invoking the engine
    max_operations: int = 200
    # Optional JSON file mapping node types to capabilities ("trigger", ...)
    node_types_file: str | None = None
    # Fall back to substring inference for node types missing from the registry
    infer_unknown_node_types: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            max_operations=int(os.getenv("FLOWDIFF_MAX_OPERATIONS", "200")),
            node_types_file=os.getenv("FLOWDIFF_NODE_TYPES_FILE") or None,
            infer_unknown_node_types=os.getenv(
                "FLOWDIFF_INFER_UNKNOWN_NODE_TYPES", "false"
            ).lower()
            in _TRUTHY,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings (read once from the environment)."""
    return Settings.from_env()
