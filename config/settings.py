"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Logging
    log_level: str = "INFO"

    # Engine
    default_cohort_policy: str = "first_revenue"  # "first_revenue" | "start_date"

    # Spreadsheet layout
    customer_column: str = "Customer"
    start_date_column: str = "Customer Start Date"
    end_date_column: str = "Customer End Date"
    totals_label: str = "Totals"

    # HTTP
    max_upload_mb: int = 10
    cors_origins: str = "*"  # comma-separated


settings = Settings()
