from typing import Optional

from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    whatsapp_token: str = ""
    graph_api_base_url: str = "https://graph.facebook.com/v17.0"
    verify_token: str = ""

    openai_api_key: str = ""
    openai_assistant_id: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_timeout_seconds: float = 60.0
    transcription_model: str = "whisper-1"
    verify_assistant_on_startup: bool = True

    run_poll_interval_seconds: float = 1.0
    run_max_poll_attempts: int = 10
    run_poll_backoff_factor: float = 1.0
    run_max_poll_interval_seconds: float = 8.0

    db_driver: str = "mysql+pymysql"
    db_server: str = "localhost"
    db_port: int = 3306
    db_username: str = "root"
    db_password: str = ""
    db_name: str = "whatsapp_bot"
    database_url: Optional[str] = None

    port: int = 1337
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    def sqlalchemy_url(self) -> str | URL:
        if self.database_url:
            return self.database_url
        return URL.create(
            drivername=self.db_driver,
            username=self.db_username,
            password=self.db_password or None,
            host=self.db_server,
            port=self.db_port,
            database=self.db_name,
        )


settings = Settings()
