"""
Configuration for the Return Collection & NCR workflow engine.

Loads settings from environment variables.
"""
import os
from pathlib import Path
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

# Root directory of the project
ROOT_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Workflow engine configuration settings."""

    # Entity store (in-memory SQLite unless overridden)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite://")
    DATABASE_ECHO: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Sequence collaborator
    SEQUENCE_TIMEOUT_SECONDS: float = float(os.getenv("SEQUENCE_TIMEOUT_SECONDS", "10"))
    NCR_NUMBER_PREFIX: str = os.getenv("NCR_NUMBER_PREFIX", "NCR")

    # NCR form
    PRINT_DELAY_SECONDS: float = float(os.getenv("PRINT_DELAY_SECONDS", "0.5"))

    # Placeholder passphrase gating NCR item edit/delete
    ITEM_EDIT_PASSPHRASE: str = os.getenv("ITEM_EDIT_PASSPHRASE", "1234")

    # Collection & consolidation defaults
    DEFAULT_TRANSPORT_METHOD: str = os.getenv("DEFAULT_TRANSPORT_METHOD", "3PL_COURIER")
    DEFAULT_PACKAGE_DESCRIPTION: str = os.getenv("DEFAULT_PACKAGE_DESCRIPTION", "General Goods")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
