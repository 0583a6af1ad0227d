"""Configuration settings for the application."""

import sys
from typing import (
    Dict,
    List,
)

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 3001
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:4173"]

    # Model Configuration
    ANTHROPIC_API_KEY: str | None = None
    MODELS: Dict[str, str] = {
        "claude-opus-4-6": "Claude Opus 4.6",
        "claude-sonnet-4-6": "Claude Sonnet 4.6",
        "claude-haiku-4-5": "Claude Haiku 4.5",
    }
    DEFAULT_MODEL: str = "claude-opus-4-6"
    MAX_TOKENS: int = 4096
    MODEL_MAX_RETRIES: int = 2  # SDK-level retries before the stream opens

    # Agent loop
    MAX_ROUNDS: int | None = None  # None = no cap
    PARALLEL_TOOL_CALLS: bool = False

    # fetch_url tool
    FETCH_TIMEOUT: float = 10.0
    FETCH_MAX_CHARS: int = 50_000
    FETCH_USER_AGENT: str = "agentwire/0.1 (URL summarizer bot)"

    # run_code tool
    RUN_CODE_TIMEOUT: float = 10.0
    RUN_CODE_MAX_OUTPUT: int = 512 * 1024
    PYTHON_BIN: str = sys.executable or "python3"
    NODE_BIN: str = "node"

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
