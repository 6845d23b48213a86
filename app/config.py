from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    DATABASE_URL: str = "sqlite+aiosqlite:///./kokosend.db"
    APP_ENV: str = "development"

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30

    # Webhook channel
    WEBHOOK_URL: str = ""
    WEBHOOK_CHAR_LIMIT: int = 2000

    # Bot channel
    BOT_TOKEN: str = ""
    BOT_CHAT_ID: str = ""
    BOT_API_BASE: str = "https://api.telegram.org"
    BOT_CHAR_LIMIT: int = 4096
    BOT_MEDIA_GROUP_SIZE: int = 10

    # History / sessions
    HISTORY_MAX_ENTRIES: int = 50
    SESSION_CACHE_SIZE: int = 100


settings = Settings()
