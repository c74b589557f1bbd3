from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Listener
    HTTP_HOST: str = "127.0.0.1"
    HTTP_PORT: int = 8053

    # Shared bearer secret; empty means every request is rejected
    HTTP_TOKEN: str = ""

    # Directory holding one <zone>.json per zone
    ZONES_PATH: str = "dns"

    # Timeouts in seconds
    HTTP_READ_TIMEOUT: float = 5.0
    HTTP_IDLE_TIMEOUT: float = 10.0
    HTTP_WRITE_TIMEOUT: float = 10.0
    HTTP_SHUTDOWN_TIMEOUT: float = 10.0

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def zones_dir(self) -> Path:
        return Path(self.ZONES_PATH)

    @property
    def listen(self) -> str:
        return f"{self.HTTP_HOST}:{self.HTTP_PORT}"
