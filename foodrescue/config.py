# foodrescue/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _database_url() -> str:
    # Build Postgres URL from individual env vars if DATABASE_URL is not set directly
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    db_user = os.getenv("DB_USER", "postgres")
    db_pass = os.getenv("DB_PASSWORD", "password")
    db_host = os.getenv("DB_HOST", "localhost")
    db_port = os.getenv("DB_PORT", "5432")
    db_name = os.getenv("DB_DATABASE", "foodrescue")
    return f"postgresql://{db_user}:{db_pass}@{db_host}:{db_port}/{db_name}"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class Settings:
    storage_backend: str = "database"
    database_url: str = "sqlite://"
    openrouter_api_key: Optional[str] = None
    ai_base_url: str = "https://openrouter.ai/api/v1"
    model_id: str = "openai/gpt-4o-mini"
    vision_model_id: str = "qwen/qwen-2-vl-72b-instruct"
    site_url: str = "http://localhost:5000"
    app_name: str = "FoodRescue"
    upload_dir: Path = Path("uploads")
    chat_rate_limit: int = 10
    chat_rate_window_seconds: int = 60

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            storage_backend=os.getenv("STORAGE_BACKEND", "database").strip().lower(),
            database_url=_database_url(),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
            ai_base_url=os.getenv("AI_BASE_URL", cls.ai_base_url),
            model_id=os.getenv("MODEL_ID", cls.model_id),
            vision_model_id=os.getenv("VISION_MODEL_ID", cls.vision_model_id),
            site_url=os.getenv("SITE_URL", cls.site_url),
            app_name=os.getenv("APP_NAME", cls.app_name),
            upload_dir=Path(os.getenv("UPLOAD_DIR", "uploads")),
            chat_rate_limit=_int_env("CHAT_RATE_LIMIT", cls.chat_rate_limit),
            chat_rate_window_seconds=_int_env("CHAT_RATE_WINDOW_SECONDS", cls.chat_rate_window_seconds),
        )
