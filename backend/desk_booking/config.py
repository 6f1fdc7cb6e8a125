from functools import lru_cache
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


class Settings(BaseModel):
    database_url: str = Field(default="sqlite+aiosqlite:///./desk_booking.db")
    echo_sql: bool = Field(default=False)
    auth_secret: str = Field(default="change-me")
    auth_algorithm: str = Field(default="HS256")
    access_token_minutes: int = Field(default=480, ge=1)
    enforce_capacity: bool = Field(default=True)
    waitlist_cap: int = Field(default=20, ge=1)
    weekly_minimum_days: int = Field(default=3, ge=1)
    compliance_threshold: int = Field(default=10, ge=0)
    timezone: str = Field(default="Asia/Kolkata")
    seed_demo_data: bool = Field(default=False)
    genai_api_key: Optional[str] = Field(default=None)
    genai_model: str = Field(default="gemini-2.5-flash")


def _env_flag(name: str, default: bool) -> bool:
    return bool(int(os.getenv(name, "1" if default else "0")))


@lru_cache
def get_settings() -> Settings:
    defaults = Settings.model_fields
    return Settings(
        database_url=os.getenv("DATABASE_URL", defaults["database_url"].default),
        echo_sql=_env_flag("ECHO_SQL", False),
        auth_secret=os.getenv("AUTH_SECRET", defaults["auth_secret"].default),
        auth_algorithm=os.getenv("AUTH_ALGORITHM", defaults["auth_algorithm"].default),
        access_token_minutes=int(os.getenv("ACCESS_TOKEN_MINUTES", defaults["access_token_minutes"].default)),
        enforce_capacity=_env_flag("ENFORCE_CAPACITY", True),
        waitlist_cap=int(os.getenv("WAITLIST_CAP", defaults["waitlist_cap"].default)),
        weekly_minimum_days=int(os.getenv("WEEKLY_MINIMUM_DAYS", defaults["weekly_minimum_days"].default)),
        compliance_threshold=int(os.getenv("COMPLIANCE_THRESHOLD", defaults["compliance_threshold"].default)),
        timezone=os.getenv("TIMEZONE", defaults["timezone"].default),
        seed_demo_data=_env_flag("SEED_DEMO_DATA", False),
        genai_api_key=os.getenv("GENAI_API_KEY") or None,
        genai_model=os.getenv("GENAI_MODEL", defaults["genai_model"].default),
    )
