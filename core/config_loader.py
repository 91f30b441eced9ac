import yaml
import os
from typing import Optional
from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    url: str


class MatchingConfig(BaseModel):
    """
    Daily matching batch configuration.
    """
    enabled: bool = True
    candidate_window_days: int = 30  # Trailing window of listings considered per run
    pool_width: int = 10  # Concurrent oracle calls per user


class BillingConfig(BaseModel):
    """
    Daily fee configuration.

    The timezone defines the processing day used by the "charged today"
    fence. Pick it once per deployment and never change it.
    """
    fee_cents: int = 30
    timezone: str = "UTC"


class LlmConfig(BaseModel):
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    request_timeout_seconds: float = 60.0


class GatewayConfig(BaseModel):
    """Payment gateway (Razorpay) configuration."""
    base_url: str = "https://api.razorpay.com/v1"
    key_id: Optional[str] = None
    key_secret: Optional[str] = None
    webhook_secret: Optional[str] = None
    currency: str = "USD"
    request_timeout_seconds: int = 15
    stale_after_minutes: int = 30  # Pending credits older than this are swept
    min_top_up: int = 5
    max_top_up: int = 500


class NotificationConfig(BaseModel):
    """
    Configuration for the match summary email.
    """
    enabled: bool = True
    base_url: str = "http://localhost:8080"  # Base URL for links in notifications
    top_matches: int = 5  # Matches listed in the summary email


class ScheduleConfig(BaseModel):
    matching_hour: int = 3  # Hour of day (billing timezone) for the daily batch
    sweep_interval_seconds: int = 900


class WebConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class AppConfig(BaseModel):
    database: DatabaseConfig
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    llm: LlmConfig = Field(default_factory=LlmConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    web: WebConfig = Field(default_factory=WebConfig)


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from root), try absolute or adjusted path
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        data.setdefault('database', {})
        data['database']['url'] = env_db_url

    # LLM credentials
    llm = data.setdefault('llm', {}) or {}
    data['llm'] = llm
    if os.environ.get("OPENAI_API_KEY"):
        llm['api_key'] = os.environ["OPENAI_API_KEY"]
    if os.environ.get("LLM_BASE_URL"):
        llm['base_url'] = os.environ["LLM_BASE_URL"]

    # Gateway secrets never live in the YAML file
    gateway = data.setdefault('gateway', {}) or {}
    data['gateway'] = gateway
    for env_name, key in (
        ("RAZORPAY_KEY_ID", "key_id"),
        ("RAZORPAY_KEY_SECRET", "key_secret"),
        ("RAZORPAY_WEBHOOK_SECRET", "webhook_secret"),
    ):
        if os.environ.get(env_name):
            gateway[key] = os.environ[env_name]

    return AppConfig(**data)
