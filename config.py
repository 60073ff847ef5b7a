# config.py
from __future__ import annotations
from typing import List, Optional, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, model_validator

class Settings(BaseSettings):
    # Read .env; ignore extra env vars to avoid crashes
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_nested_delimiter="__",
        env_prefix="",  # no automatic prefix
    )

    # --- Runtime env / debugging ---
    APP_ENV: Literal["development", "staging", "production"] = Field(
        default="development",
        validation_alias=AliasChoices("APP_ENV", "app_env"),
    )
    DEBUG: bool = Field(
        default=False,
        validation_alias=AliasChoices("DEBUG", "debug"),
    )
    API_VERSION: str = Field(
        default="v1",
        validation_alias=AliasChoices("API_VERSION", "api_version"),
    )

    # --- Server Settings (for deployment) ---
    PORT: int = Field(
        default=3000,
        validation_alias=AliasChoices("PORT", "port"),
    )
    HOST: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("HOST", "host"),
    )

    # --- LLM providers ---
    GROQ_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("GROQ_API_KEY", "groq_api_key"),
    )
    GROQ_MODEL: str = Field(
        default="llama-3.1-70b-versatile",
        validation_alias=AliasChoices("GROQ_MODEL", "groq_model"),
    )
    HUGGINGFACE_TOKEN: str = Field(
        default="",
        validation_alias=AliasChoices("HUGGINGFACE_TOKEN", "huggingface_token", "HF_TOKEN"),
    )
    HUGGINGFACE_MODEL: str = Field(
        default="meta-llama/Meta-Llama-3-8B-Instruct",
        validation_alias=AliasChoices("HUGGINGFACE_MODEL", "huggingface_model"),
    )
    HUGGINGFACE_TEXT_MODEL: str = Field(
        default="mistralai/Mistral-7B-Instruct-v0.2",
        validation_alias=AliasChoices("HUGGINGFACE_TEXT_MODEL", "huggingface_text_model"),
    )
    GEMINI_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "gemini_api_key"),
    )
    GEMINI_MODEL: str = Field(
        default="gemini-1.5-flash",
        validation_alias=AliasChoices("GEMINI_MODEL", "gemini_model"),
    )
    # Fallback chain, tried in order
    LLM_PROVIDER_ORDER: List[Literal["groq", "huggingface", "gemini"]] = Field(
        default_factory=lambda: ["groq", "huggingface"],
        validation_alias=AliasChoices("LLM_PROVIDER_ORDER", "llm_provider_order"),
    )
    LLM_TIMEOUT_S: float = Field(
        default=120.0,
        validation_alias=AliasChoices("LLM_TIMEOUT_S", "llm_timeout_s"),
    )
    PLAN_MAX_TOKENS: int = Field(
        default=4000,
        validation_alias=AliasChoices("PLAN_MAX_TOKENS", "plan_max_tokens"),
    )
    PLAN_TEMPERATURE: float = Field(
        default=0.1,
        validation_alias=AliasChoices("PLAN_TEMPERATURE", "plan_temperature"),
    )

    # --- Photo enrichment ---
    GOOGLE_PLACES_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("GOOGLE_PLACES_API_KEY", "google_places_api_key"),
    )
    UNSPLASH_ACCESS_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("UNSPLASH_ACCESS_KEY", "unsplash_access_key"),
    )
    PHOTO_BATCH_SIZE: int = Field(
        default=5,
        validation_alias=AliasChoices("PHOTO_BATCH_SIZE", "photo_batch_size"),
    )
    PHOTO_BATCH_DELAY_S: float = Field(
        default=0.1,
        validation_alias=AliasChoices("PHOTO_BATCH_DELAY_S", "photo_batch_delay_s"),
    )

    # --- Auth backend (Supabase) ---
    SUPABASE_URL: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_URL", "supabase_url"),
    )
    SUPABASE_SERVICE_ROLE_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE_KEY", "supabase_service_role_key"),
    )
    SUPABASE_ANON_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_ANON_KEY", "supabase_anon_key"),
    )
    FRONTEND_URL: str = Field(
        default="travelmind://reset-password",
        validation_alias=AliasChoices("FRONTEND_URL", "frontend_url"),
    )

    # --- Routing ---
    OSRM_BASE_URL: str = Field(
        default="https://router.project-osrm.org",
        validation_alias=AliasChoices("OSRM_BASE_URL", "osrm_base_url"),
    )

    # --- CORS (env-driven) ---
    CORS_ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS", "cors_allow_origins"),
    )
    # Optional comma-separated alternative that overrides the above
    FRONTEND_ORIGINS: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("FRONTEND_ORIGINS", "frontend_origins"),
    )

    CORS_ALLOW_CREDENTIALS: bool = Field(
        default=False,
        validation_alias=AliasChoices("CORS_ALLOW_CREDENTIALS", "cors_allow_credentials"),
    )
    CORS_ALLOW_METHODS: List[str] = Field(
        default_factory=lambda: ["GET", "POST", "OPTIONS"],
        validation_alias=AliasChoices("CORS_ALLOW_METHODS", "cors_allow_methods"),
    )
    CORS_ALLOW_HEADERS: List[str] = Field(
        default_factory=lambda: [
            "Accept",
            "Accept-Language",
            "Authorization",
            "Content-Language",
            "Content-Type",
            "X-Request-Id",
        ],
        validation_alias=AliasChoices("CORS_ALLOW_HEADERS", "cors_allow_headers"),
    )
    CORS_EXPOSE_HEADERS: List[str] = Field(
        default_factory=lambda: ["X-Request-Id"],
        validation_alias=AliasChoices("CORS_EXPOSE_HEADERS", "cors_expose_headers"),
    )
    CORS_MAX_AGE: int = Field(
        default=86400,
        validation_alias=AliasChoices("CORS_MAX_AGE", "cors_max_age"),
    )

    @model_validator(mode="after")
    def _merge_frontend_origins(self) -> "Settings":
        if self.FRONTEND_ORIGINS:
            parts = [p.strip() for p in self.FRONTEND_ORIGINS.split(",") if p.strip()]
            if parts:
                self.CORS_ALLOW_ORIGINS = parts
        return self

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Validate critical settings for production deployment."""
        if self.APP_ENV == "production":
            if not (self.GROQ_API_KEY or self.HUGGINGFACE_TOKEN or self.GEMINI_API_KEY):
                raise ValueError(
                    "At least one of GROQ_API_KEY, HUGGINGFACE_TOKEN or GEMINI_API_KEY must be set in production. "
                    "Groq keys are free at https://console.groq.com/keys"
                )

            localhost_origins = [origin for origin in self.CORS_ALLOW_ORIGINS
                               if "localhost" in origin or "127.0.0.1" in origin]
            if localhost_origins:
                import logging
                logging.getLogger("config").warning(
                    f"Production environment includes localhost CORS origins: {localhost_origins}. "
                    "Consider removing these for production deployment."
                )

        return self

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.DEBUG else "INFO"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)

settings = Settings()
