from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):

    DATABASE_URL: str = "sqlite+aiosqlite:///./proverbs.db"
    SQL_ECHO: bool = False
    MONGO_URI: Optional[str] = None
    MONGO_DB_NAME: str = "proverbs"
    # use the $group pipeline when available, otherwise aggregate client-side
    MONGO_SERVER_AGGREGATE: bool = True
    RATINGS_BACKEND: Literal["sql", "mongo"] = "sql"
    SECRET_KEY: str = "your-secret-key"
    ACCESS_PIN: str = "1234"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30 * 24 * 60
    LOG_LEVEL: str = "INFO"
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env", validate_assignment=True, extra="allow"
    )

def get_settings():
    return Settings()
