"""
Configuration management for the Loft bookkeeping API
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Loft Reseller Bookkeeping API"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./loft.db"

    # Defaults
    default_currency: str = "GBP"

    # Subscription limits
    free_tier_product_limit: int = 100
    subscription_alert_threshold: int = 80  # 80% of the free limit

    # Dashboard / analytics sizing
    low_stock_alert_sample: int = 10
    dashboard_top_products: int = 5
    analytics_top_products: int = 10
    dashboard_recent_sales: int = 5
    expense_trend_months: int = 6

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
