from typing import Literal, Optional

from pydantic import HttpUrl, PositiveInt, field_validator
from pydantic_settings import BaseSettings
from rich import print

from esf.adapters.logging_adapter import LoggingAdapter
from esf.core.interfaces.logging import LoggingPort


# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class EsfSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }
    ESF_LOG_LEVEL: str = "INFO"
    ESF_SEARCH_SERVICE_URL: HttpUrl = HttpUrl("http://localhost:5000")
    ESF_SUBMIT_PATH: str = "/blast"
    ESF_STATUS_PATH: str = "/status"
    ESF_RESULT_PATH: str = "/results"
    # Tick period in seconds
    ESF_POLL_INTERVAL: float = 1.0
    # The submission request may legitimately stay open for minutes
    ESF_SUBMIT_TIMEOUT: float = 600.0
    ESF_REQUEST_TIMEOUT: float = 10.0
    ESF_STATUS_POLL_MAX_FAILURES: Optional[PositiveInt] = None
    ESF_POLL_TIMEOUT_TICKS: Optional[PositiveInt] = None
    ESF_RESULT_FETCH_ATTEMPTS: PositiveInt = 3
    ESF_SUBMISSION_POLICY: Literal["supersede", "reject"] = "supersede"
    ESF_API_SERVER_HOST: str = "0.0.0.0"
    ESF_API_SERVER_PORT: int = 8000

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("ESF Settings:")
        print(self)

    @field_validator("ESF_SUBMIT_PATH", "ESF_STATUS_PATH", "ESF_RESULT_PATH", mode="before")
    def ensure_leading_slash(cls, value: str) -> str:
        if not value.startswith("/"):
            value = "/" + value
        return value


app_settings = EsfSettings()

logger = LoggingAdapter("ESF", app_settings.ESF_LOG_LEVEL)
