"""
Configuration module for the Zhir assistant API.
Loads settings from environment variables or .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root (parent of zhir/ directory)
_project_root = Path(__file__).parent.parent
_env_path = _project_root / ".env"
load_dotenv(_env_path)


_DEFAULT_SYSTEM_PROMPT = (
    "Your name is Zhir, an AI assistant that helps users with their questions. "
    "Be polite and concise."
)


class Config:
    """Application configuration."""

    # Database settings
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./zhir.db"))

    # API settings
    API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    ZHIR_API_KEY: str = os.getenv("ZHIR_API_KEY", "")  # Shared secret with the front-end
    USER_ID_HEADER: str = os.getenv("USER_ID_HEADER", "X-User-Id")
    CORS_ORIGINS: list = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if origin.strip()
    ]

    # "development" exposes exception messages in 500 responses
    APP_ENV: str = os.getenv("APP_ENV", "production")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # LLM Provider settings
    # Supported providers: "openai", "gemini", "ollama", "anthropic"
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")

    # OpenAI settings
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

    # Google Gemini settings
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

    # Ollama settings (local models)
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "llama3.2")

    # Anthropic settings
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

    # Common LLM settings
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "4096"))

    # Chat relay settings
    SYSTEM_PROMPT: str = os.getenv("SYSTEM_PROMPT", _DEFAULT_SYSTEM_PROMPT)
    MAX_MESSAGE_LENGTH: int = int(os.getenv("MAX_MESSAGE_LENGTH", "200"))
    HISTORY_CHAR_BUDGET: int = int(os.getenv("HISTORY_CHAR_BUDGET", "36000"))
    TITLE_LENGTH: int = int(os.getenv("TITLE_LENGTH", "50"))
    # Unknown conversation ids start a new conversation; false answers 404 instead
    CHAT_FALLBACK_TO_NEW: bool = os.getenv("CHAT_FALLBACK_TO_NEW", "true").lower() == "true"

    # Credits
    BLOG_COST: int = int(os.getenv("BLOG_COST", "1"))
    SIGNUP_COINS: int = int(os.getenv("SIGNUP_COINS", "0"))

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        if cls.MAX_MESSAGE_LENGTH <= 0:
            raise ValueError(
                f"MAX_MESSAGE_LENGTH must be positive. Current value: {cls.MAX_MESSAGE_LENGTH}"
            )
        if cls.HISTORY_CHAR_BUDGET < 0:
            raise ValueError(
                f"HISTORY_CHAR_BUDGET must not be negative. Current value: {cls.HISTORY_CHAR_BUDGET}"
            )
        if cls.TITLE_LENGTH <= 0:
            raise ValueError(f"TITLE_LENGTH must be positive. Current value: {cls.TITLE_LENGTH}")
        if cls.BLOG_COST < 0 or cls.SIGNUP_COINS < 0:
            raise ValueError("BLOG_COST and SIGNUP_COINS must not be negative")

    @classmethod
    def validate_llm_config(cls) -> None:
        """Validate LLM provider configuration."""
        provider = cls.LLM_PROVIDER.lower()

        if provider not in ("openai", "gemini", "ollama", "anthropic"):
            raise ValueError(
                f"LLM_PROVIDER must be one of: openai, gemini, ollama, anthropic. "
                f"Got: {provider}"
            )

        if provider == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY must be set when using OpenAI provider")

        if provider == "gemini" and not cls.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY must be set when using Gemini provider")

        if provider == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY must be set when using Anthropic provider")

    @classmethod
    def get_llm_config(cls) -> dict:
        """Get configuration for the active LLM provider."""
        provider = cls.LLM_PROVIDER.lower()

        base_config = {
            "provider": provider,
            "temperature": cls.LLM_TEMPERATURE,
            "max_tokens": cls.LLM_MAX_TOKENS,
        }

        if provider == "openai":
            return {
                **base_config,
                "api_key": cls.OPENAI_API_KEY,
                "model": cls.OPENAI_MODEL,
                "base_url": cls.OPENAI_BASE_URL,
            }
        elif provider == "gemini":
            return {
                **base_config,
                "api_key": cls.GEMINI_API_KEY,
                "model": cls.GEMINI_MODEL,
            }
        elif provider == "ollama":
            return {
                **base_config,
                "base_url": cls.OLLAMA_BASE_URL,
                "model": cls.OLLAMA_MODEL,
            }
        elif provider == "anthropic":
            return {
                **base_config,
                "api_key": cls.ANTHROPIC_API_KEY,
                "model": cls.ANTHROPIC_MODEL,
            }

        raise ValueError(f"Unknown LLM provider: {provider}")

    @classmethod
    def is_development(cls) -> bool:
        """True when running with APP_ENV=development."""
        return cls.APP_ENV.lower() == "development"


# Singleton config instance
config = Config()
