from pydantic_settings import BaseSettings
from typing import Optional
import os

class Settings(BaseSettings):
    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./lissan.db")

    # JWT
    secret_key: str = os.getenv("SECRET_KEY", os.getenv("JWT_SECRET", "your-secret-key-change-in-production"))
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    bcrypt_rounds: int = 12

    # OpenAI
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4")
    openai_temperature: float = 0.7
    chat_max_tokens: int = 2000
    api_chat_max_tokens: int = 1000

    # Retrieval context budget
    history_limit: int = 10
    context_document_limit: int = 5
    context_excerpt_chars: int = 1000

    # Uploads
    upload_path: str = os.getenv("UPLOAD_PATH", "./uploads")
    max_file_size: int = int(os.getenv("MAX_FILE_SIZE", "10485760"))  # 10MB

    # Workflows
    webhook_timeout_seconds: float = 30.0

    # Widget
    widget_rate_limit: str = "100/15minutes"
    rate_limit_enabled: bool = True

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

# Create global settings instance
settings = Settings()
