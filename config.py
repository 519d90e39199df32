"""Condense configuration, loaded from environment / .env file."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # --- Summarization provider ----------------------------------------
    llm_provider: str = "huggingface"  # "huggingface" | "openai" | "azure" | "local"

    # Hugging Face inference router (OpenAI-compatible)
    hf_token: str = ""
    hf_base_url: str = "https://router.huggingface.co/v1"
    hf_models: str = (
        "meta-llama/Llama-3.1-8B-Instruct,"
        "mistralai/Mistral-7B-Instruct-v0.2,"
        "google/gemma-7b-it,"
        "microsoft/Phi-3-mini-4k-instruct"
    )

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # Azure OpenAI
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_deployment: str = ""

    # Local / Ollama
    local_llm_base_url: str = "http://localhost:11434/v1"
    local_llm_model: str = "llama3"

    summary_max_tokens: int = 300
    summary_temperature: float = 0.3
    provider_timeout_seconds: float = 60.0
    provider_attempts_per_model: int = 2

    # --- Content fetch --------------------------------------------------
    fetch_timeout_seconds: float = 15.0
    fetch_max_bytes: int = 2 * 1024 * 1024
    fetch_max_chars: int = 20_000

    # --- Job store ------------------------------------------------------
    database_url: str = "sqlite:///./condense.db"

    # --- Worker ---------------------------------------------------------
    worker_enabled: bool = True
    worker_poll_interval: float = 1.0  # seconds between store scans when idle

    # --- Server ---------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    internal_token: str = ""  # shared secret for the X-Internal-Token header
    allowed_origins: str = "*"  # comma-separated origins

    def model_list(self) -> list[str]:
        """Return the Hugging Face fallback chain as a list."""
        return [m.strip() for m in self.hf_models.split(",") if m.strip()]


settings = Settings()
