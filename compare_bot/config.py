"""
Configuration for the product comparison assistant.
Plain class attributes read from the environment, one subclass per deployment.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent.parent


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


class BaseConfig:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    JSON_SORT_KEYS: bool = False
    PORT: int = int(os.getenv("PORT", "3001"))

    # Anthropic - MUST be set via environment variable
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")

    # LLM
    LLM_MODEL: str = os.getenv("LLM_MODEL", "claude-haiku-4-5-20251001")
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "1024"))
    LLM_TEMPERATURE: Optional[float] = (
        float(os.environ["LLM_TEMPERATURE"]) if os.getenv("LLM_TEMPERATURE") else None
    )

    # Conversation limits
    MAX_HISTORY_MESSAGES: int = int(os.getenv("MAX_HISTORY_MESSAGES", "20"))
    MAX_TOOL_ROUNDS: int = int(os.getenv("MAX_TOOL_ROUNDS", "5"))
    TURN_TIMEOUT_SECONDS: float = float(os.getenv("TURN_TIMEOUT_SECONDS", "120"))

    # Sessions
    SESSION_TTL_SECONDS: int = int(os.getenv("SESSION_TTL_SECONDS", "1800"))
    SESSION_SWEEP_INTERVAL_SECONDS: int = int(os.getenv("SESSION_SWEEP_INTERVAL_SECONDS", "300"))

    # Tools
    TOOL_EXECUTOR: str = os.getenv("TOOL_EXECUTOR", "local").lower()
    TOOLS_RETRY_AFTER_SECONDS: float = float(os.getenv("TOOLS_RETRY_AFTER_SECONDS", "60"))
    MCP_SERVER_COMMAND: str = os.getenv("MCP_SERVER_COMMAND", "node")
    MCP_SERVER_ARGS: str = os.getenv("MCP_SERVER_ARGS", "")

    # Retrieval (vector store)
    RETRIEVAL_ENABLED: bool = _flag("RETRIEVAL_ENABLED", "true")
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "15"))
    RETRIEVAL_SCORE_THRESHOLD: float = float(os.getenv("RETRIEVAL_SCORE_THRESHOLD", "0.5"))
    VECTOR_STORE_PATH: str = os.getenv("VECTOR_STORE_PATH", str(BASE_DIR / "vector_store"))
    EMBEDDING_MODEL: str = os.getenv(
        "EMBEDDING_MODEL", "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"
    )

    # HTTP validation
    MAX_MESSAGE_LENGTH: int = int(os.getenv("MAX_MESSAGE_LENGTH", "2000"))
    MAX_SKUS: int = int(os.getenv("MAX_SKUS", "6"))
    CORS_ALLOW_ORIGINS: str = os.getenv("CORS_ALLOW_ORIGINS", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True


class ProductionConfig(BaseConfig):
    DEBUG: bool = False


class TestingConfig(BaseConfig):
    TESTING: bool = True
    RETRIEVAL_ENABLED: bool = False
    SESSION_SWEEP_INTERVAL_SECONDS: int = 3600


_MAPPING = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "test": TestingConfig,
}


def get_config(env: Optional[str] = None) -> BaseConfig:
    """Get configuration instance directly - no complex manager."""
    env = (env or os.getenv("APP_ENV", os.getenv("FLASK_ENV", "development"))).lower()
    config_class = _MAPPING.get(env, DevelopmentConfig)
    cfg = config_class()

    log = logging.getLogger(__name__)
    if not getattr(get_config, "_logged_startup", False):
        log.info(f"CONFIG_STARTUP | env={env} | config_class={config_class.__name__}")
        log.info(f"LLM_CONFIG | model={cfg.LLM_MODEL} | max_tokens={cfg.LLM_MAX_TOKENS}")
        log.info(
            f"TURN_CONFIG | max_history={cfg.MAX_HISTORY_MESSAGES} | max_tool_rounds={cfg.MAX_TOOL_ROUNDS}"
        )
        log.info(
            f"SESSION_CONFIG | ttl={cfg.SESSION_TTL_SECONDS}s | sweep_every={cfg.SESSION_SWEEP_INTERVAL_SECONDS}s"
        )
        log.info(f"TOOLS_CONFIG | executor={cfg.TOOL_EXECUTOR}")
        log.info(
            f"RETRIEVAL_CONFIG | enabled={cfg.RETRIEVAL_ENABLED} | top_k={cfg.RETRIEVAL_TOP_K} | threshold={cfg.RETRIEVAL_SCORE_THRESHOLD}"
        )
        get_config._logged_startup = True

    return cfg
