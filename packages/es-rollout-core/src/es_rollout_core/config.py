"""Environment-based configuration for the rollout core."""

from pydantic_settings import BaseSettings

from es_rollout_core.retry import RetryConfig


class RolloutSettings(BaseSettings):
    """Rollout timing and retry configuration.

    All settings can be overridden via environment variables with
    ES_ROLLOUT_ prefix. For example:
        ES_ROLLOUT_ROLLOUT_TIMEOUT_SECONDS=120
        ES_ROLLOUT_POLL_INTERVAL_SECONDS=2
    """

    # Bounded waits
    poll_interval_seconds: float = 1.0
    rollout_timeout_seconds: float = 30.0  # template/pod convergence
    membership_timeout_seconds: float = 60.0  # cluster join/leave

    # Optimistic-concurrency retry
    conflict_max_attempts: int = 5
    conflict_min_wait_seconds: float = 0.01

    # Daemon
    reconcile_interval_seconds: float = 30.0

    # Configuration keys excluded from fingerprints
    volatile_config_keys: list[str] = ["index_settings"]

    model_config = {"env_prefix": "ES_ROLLOUT_"}

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.conflict_max_attempts,
            min_wait_seconds=self.conflict_min_wait_seconds,
        )
