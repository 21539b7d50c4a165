"""Configuration and environment settings"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine configuration"""

    # Workbook
    DEFAULT_SHEET_NAME: str = "Sheet1"
    DISPLAY_PREFERENCE: str = "as_entered"  # as_entered, metric, imperial

    # Units
    ALLOW_CUSTOM_UNITS: bool = True  # unknown symbols become custom dimensions

    # Evaluation
    MAX_RANGE_CELLS: int = 10000
    COMPARISON_TOLERANCE: float = 1e-9

    # Unit suggestions
    FUZZY_MATCH_THRESHOLD: int = 60
    MAX_UNIT_SUGGESTIONS: int = 3

    # Persistence
    DOCUMENT_VERSION: str = "1.0"

    # Logging
    LOG_LEVEL: str = "WARNING"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
