from dataclasses import dataclass, field
from typing import List

from core.models.greenhouse import GreenhouseConfig
from core.persistence.local_store import TOKEN_KEYS


@dataclass
class TimingConfig:
    """Engine timings, all in seconds."""
    cache_ttl: float = 300.0
    save_throttle: float = 1.0
    save_debounce: float = 1.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    retry_backoff: float = 2.0
    drag_click_threshold: float = 0.1
    success_message_duration: float = 1.0
    reset_message_duration: float = 2.0


@dataclass
class SyncConfigData:
    timing: TimingConfig = field(default_factory=TimingConfig)
    default_greenhouse: GreenhouseConfig = field(default_factory=GreenhouseConfig)
    token_keys: List[str] = field(default_factory=lambda: list(TOKEN_KEYS))
