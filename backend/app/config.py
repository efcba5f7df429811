"""Configuration management for the application."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Azure OpenAI Configuration
    # Endpoint format: https://<resource>.openai.azure.com
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_api_version: str = "2024-06-01"
    azure_openai_deployment_name: str = ""
    azure_openai_max_retries: int = 0

    # Application Configuration
    app_env: str = "development"
    log_level: str = "INFO"
    app_insights_connection_string: Optional[str] = None

    # Database Configuration
    database_url: str = "sqlite+aiosqlite:///./chatbot.db"

    # External search (SerpAPI); empty key means the fallback search is disabled
    serp_api_key: Optional[str] = None
    serp_api_url: str = "https://serpapi.com/search.json"
    search_query_suffix: str = "scholarship (site:.edu.tw OR site:.gov.tw)"
    search_locale_gl: str = "tw"
    search_locale_hl: str = "zh-tw"

    # Per-call timeouts (seconds)
    classify_timeout_seconds: float = 10.0
    scoring_timeout_seconds: float = 20.0
    reformulate_timeout_seconds: float = 10.0
    search_timeout_seconds: float = 10.0
    generation_timeout_seconds: float = 60.0
    persistence_timeout_seconds: float = 5.0
    repository_timeout_seconds: float = 5.0

    # Sampling
    generation_temperature: float = 0.7
    generation_max_tokens: int = 2048

    # Guardrails
    require_auth: bool = True
    api_tokens: str = ""  # "token:caller_id,token2:caller_id2"
    chat_rate_limit: int = 30
    chat_rate_limit_window_seconds: int = 60
    max_message_length: int = 1000
    max_history_turns: int = 50

    # Fixed user-facing messages
    off_topic_message: str = (
        "I'm only able to help with scholarship applications and campus financial aid. "
        "This question is outside what I can answer reliably, but our scholarship staff "
        "can help you through human support."
    )
    empty_answer_message: str = "Sorry, I can't provide a useful answer to this question right now."
    upstream_failure_message: str = (
        "Sorry, the assistant is temporarily unavailable. Please try again in a moment."
    )
    internal_disclaimer: str = (
        "This summary was generated by AI from campus announcements. "
        "If anything differs, please verify against the original announcement."
    )
    external_disclaimer: str = (
        "This summary was generated by AI from web search results. "
        "Please verify via the cited link."
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
