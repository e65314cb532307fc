"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
Engine code never reads the environment directly: it receives a
ProgramRules value built from these settings (or supplied by the caller).
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Status ladder (XP needed to attain each level)
    SILVER_THRESHOLD: int = Field(default=100, ge=0)
    GOLD_THRESHOLD: int = Field(default=180, ge=0)
    PLATINUM_THRESHOLD: int = Field(default=300, ge=0)

    # XP needed to keep the top status for another cycle
    PLATINUM_RETAIN_THRESHOLD: int = Field(default=300, ge=0)

    # Maximum surplus XP carried into the next cycle.
    # Cumulative XP above PLATINUM_THRESHOLD + ROLLOVER_CAP is wasted.
    ROLLOVER_CAP: int = Field(default=300, ge=0)

    # Month used to anchor cycles when no start date is configured
    DEFAULT_ANNIVERSARY_MONTH: int = Field(default=11, ge=1, le=12)

    # First month of the synthetic qualification year (1 = calendar year)
    QUALIFICATION_YEAR_START_MONTH: int = Field(default=11, ge=1, le=12)

    # Ultimate layer (UXP on top of Platinum)
    ULTIMATE_UXP_THRESHOLD: int = Field(default=900, ge=0)
    UXP_YEARLY_CAP: int = Field(default=1800, ge=0)
    UXP_ROLLOVER_MAX: int = Field(default=900, ge=0)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")


# Global settings instance
settings = Settings()
