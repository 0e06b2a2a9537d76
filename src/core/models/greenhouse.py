"""Greenhouse geometry model."""
from enum import Enum
from typing import Literal

from pydantic import Field
from pydantic.dataclasses import dataclass

GreenhouseType = Literal["vinyl", "glass"]

MAX_WIDTH = 100.0
MAX_HEIGHT = 20.0
MAX_LENGTH_EDITOR = 200.0
MAX_LENGTH_STORED = 500.0

DEFAULT_NAME = "Greenhouse"


class ConfigContext(Enum):
    """Where a config is being checked; the two contexts allow different lengths."""
    EDITOR = "editor"
    STORED = "stored"

    @property
    def max_length(self) -> float:
        return MAX_LENGTH_EDITOR if self is ConfigContext.EDITOR else MAX_LENGTH_STORED


@dataclass
class GreenhouseConfig:
    """
    Physical greenhouse dimensions in meters.
    Compatible with both dataclass operations and Pydantic validation.
    """
    type: GreenhouseType = "vinyl"
    width: float = Field(default=20.0, gt=0, le=MAX_WIDTH)
    length: float = Field(default=50.0, gt=0, le=MAX_LENGTH_STORED)
    height: float = Field(default=4.0, gt=0, le=MAX_HEIGHT)
    name: str = Field(default=DEFAULT_NAME, min_length=1)

    @property
    def floor_area(self) -> float:
        return self.width * self.length


def is_valid_greenhouse_config(config: GreenhouseConfig, context: ConfigContext = ConfigContext.EDITOR) -> bool:
    """Check dimension limits for the given context (the model itself enforces the stored limits)."""
    return (
        0 < config.width <= MAX_WIDTH
        and 0 < config.length <= context.max_length
        and 0 < config.height <= MAX_HEIGHT
        and isinstance(config.name, str) and len(config.name) > 0
        and config.type in ("vinyl", "glass")
    )
