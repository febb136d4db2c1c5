"""
Application configuration using Pydantic Settings
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Source ledger
    SOURCE_API_URL: str = "https://api.braintreegateway.com/v1"
    SOURCE_API_KEY: Optional[str] = None

    # Cohort classification
    LLM_API_URL: str = "https://api.openai.com/v1"
    LLM_API_KEY: Optional[str] = None
    LLM_MODEL: str = "gpt-4"
    COHORT_MAX_TOKENS: int = 50
    COHORT_TEMPERATURE: float = 0.7
    CLASSIFY_CONCURRENCY: int = 5

    # Destination ERP
    DESTINATION_URL: str = "https://rest.netsuite.com/api"
    DESTINATION_API_KEY: Optional[str] = None

    # HTTP resilience
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 1.0
    REQUEST_TIMEOUT: float = 30.0

    # Event fan-out
    SUBSCRIBER_QUEUE_SIZE: int = 1000

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
