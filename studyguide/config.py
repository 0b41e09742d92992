"""
Environment-driven settings for the study guide service
"""
from __future__ import annotations

import os
from typing import Optional

VERSION = "1.0.0"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./studyguide.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Generation endpoints are the expensive ones; everything else is unlimited
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() not in ("0", "false", "no")
AI_GENERATION_RATE_LIMIT = os.getenv("AI_GENERATION_RATE_LIMIT", "10/minute")


def llm_base_url() -> Optional[str]:
    return os.getenv("LLM_BASE_URL") or None


def llm_api_key() -> Optional[str]:
    key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
    if key:
        return key
    # Ollama ignores the key but the SDK refuses to start without one
    return "ollama" if llm_base_url() else None


def llm_model() -> str:
    default = "llama3.1:8b" if llm_base_url() else "gpt-4o-mini"
    return os.getenv("LLM_MODEL", default)


def llm_timeout() -> float:
    return float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))


def llm_max_retries() -> int:
    return int(os.getenv("LLM_MAX_RETRIES", "2"))


def llm_retry_base_delay() -> float:
    return float(os.getenv("LLM_RETRY_BASE_DELAY", "1.0"))


def llm_configured() -> bool:
    return llm_api_key() is not None
