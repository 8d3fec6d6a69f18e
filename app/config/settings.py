from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Server
    port: int = 3000
    request_timeout_seconds: int = 30

    # Supabase
    supabase_url: str
    supabase_service_role_key: str

    # Clerk
    clerk_secret_key: str
    clerk_api_url: str = "https://api.clerk.com/v1"

    # Email (SMTP)
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    frontend_url: str = "http://localhost:5173"

    # Ollama
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "phi3:latest"  # Change this to your installed model

    # App
    app_name: str = "Project Manager"
    node_env: str = "development"  # development | production
    log_level: str = "INFO"
    cors_origin: str = "*"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    rate_limit_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.node_env == "production"

    @property
    def email_configured(self) -> bool:
        return bool(self.email_user and self.email_password)

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
