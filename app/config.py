# app/config.py
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from .errors import ConfigurationError

DEFAULT_LLM_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_LLM_MODEL = "gemini-1.5-flash"


class Settings(BaseModel):
    database_url: str
    gemini_api_key: Optional[str] = None
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_model: str = DEFAULT_LLM_MODEL
    llm_timeout: Optional[float] = None  # seconds; None waits indefinitely
    log_file: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the process environment (and a local .env file).

        Only DATABASE_URL is mandatory at startup; the Gemini key is checked
        when an insight is requested so the budget endpoints keep working
        without it.
        """
        load_dotenv()

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise ConfigurationError("DATABASE_URL not configured")

        timeout = os.getenv("LLM_TIMEOUT")
        try:
            llm_timeout = float(timeout) if timeout else None
        except ValueError:
            raise ConfigurationError(f"LLM_TIMEOUT must be a number of seconds, got {timeout!r}")

        return cls(
            database_url=database_url,
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            llm_base_url=os.getenv("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            llm_model=os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_timeout=llm_timeout,
            log_file=os.getenv("LOG_FILE") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
