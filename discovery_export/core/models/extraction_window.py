"""
ExtractionWindow model: the time range an export run covers.
"""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, model_validator

ROLLING_WINDOW = timedelta(hours=24)


class WindowMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class ExtractionWindow(BaseModel):
    """
    Either a full extraction (no time bound) or an incremental one.

    Attributes:
        mode: full or incremental
        since: Lower bound for incremental windows, None for full
        explicit: True when `since` was supplied by the operator rather than
            derived from the rolling 24 hour default
    """

    mode: WindowMode
    since: datetime | None = None
    explicit: bool = False

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_mode_bounds(self) -> "ExtractionWindow":
        """Full windows carry no bound; incremental windows always do."""
        if self.mode is WindowMode.FULL:
            if self.since is not None or self.explicit:
                raise ValueError("A full window cannot have a since bound")
        elif self.since is None:
            raise ValueError("An incremental window requires a since bound")
        return self

    @classmethod
    def full(cls) -> "ExtractionWindow":
        return cls(mode=WindowMode.FULL)

    @classmethod
    def rolling(cls, now: datetime) -> "ExtractionWindow":
        """Incremental window covering the 24 hours before `now`."""
        return cls(mode=WindowMode.INCREMENTAL, since=now - ROLLING_WINDOW)

    @classmethod
    def explicit_since(cls, since: datetime) -> "ExtractionWindow":
        return cls(mode=WindowMode.INCREMENTAL, since=since, explicit=True)

    @property
    def is_full(self) -> bool:
        return self.mode is WindowMode.FULL

    def describe(self) -> str:
        if self.is_full:
            return "full"
        kind = "explicit" if self.explicit else "rolling"
        return f"incremental ({kind}) since {self.since.isoformat()}"
