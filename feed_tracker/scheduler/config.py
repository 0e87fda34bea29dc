"""Configuration for the polling scheduler."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from feed_tracker.feeds.diff import DiffPolicy


class SchedulerConfig(BaseSettings):
    """Settings for cycle fan-out, deadlines and polling cadence."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        case_sensitive=False,
        extra="ignore",
    )

    max_concurrency: int = Field(
        default=8,
        ge=1,
        le=256,
        description="Sources processed in parallel within one cycle",
    )
    cycle_timeout_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Deadline for one full cycle; unfinished sources time out",
    )
    poll_interval_seconds: float = Field(
        default=900.0,
        gt=0.0,
        description="Pause between cycles when polling continuously",
    )
    diff_policy: DiffPolicy = Field(
        default=DiffPolicy.SYNTHETIC,
        description="How items without a guid are keyed",
    )
