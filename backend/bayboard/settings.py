"""
ShopSettings: shop configuration consumed by the board.

ShopSettings is the SINGLE OBJECT that configures the board:
- Service bays (the in-bay lane holds at most one job per active bay)
- Confirmation policy for transitions that need one
- Commit timeout for the persistence round-trip
- Optional per-lane capacity overrides

Settings are immutable once loaded. Reload to change them.

Environment:
- BAYBOARD_SETTINGS: path to a JSON settings file
- BAYBOARD_DB_PATH: SQLite file (unset: in-memory registry only)
"""

import json
import os
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


ENV_SETTINGS_PATH = "BAYBOARD_SETTINGS"
ENV_DB_PATH = "BAYBOARD_DB_PATH"


class ConfirmationPolicy(str, Enum):
    """
    How the board treats transitions that require confirmation.

    SOFT: surface a warning and commit anyway.
    STRICT: stop and wait for an explicit confirmed drop.
    """

    SOFT = "soft"
    STRICT = "strict"


@dataclass(frozen=True)
class BayConfiguration:
    """A physical service bay."""

    id: str
    name: str
    short_code: str = ""
    is_active: bool = True
    supports_heavy_duty: bool = False
    notes: str = ""


DEFAULT_BAYS: Tuple[BayConfiguration, ...] = (
    BayConfiguration(id="bay-1", name="Bay 1", short_code="B1"),
    BayConfiguration(id="bay-2", name="Bay 2", short_code="B2"),
)


@dataclass(frozen=True)
class ShopSettings:
    """
    Complete, immutable board configuration.

    lane_capacity maps status identifiers to a maximum occupancy and
    overrides the bay-derived capacity of the in-bay lane when present.
    """

    shop_name: str = "Service Shop"
    bays: Tuple[BayConfiguration, ...] = DEFAULT_BAYS
    confirmation_policy: ConfirmationPolicy = ConfirmationPolicy.SOFT
    commit_timeout_seconds: float = 10.0
    lane_capacity: Dict[str, int] = field(default_factory=dict)

    @property
    def active_bays(self) -> Tuple[BayConfiguration, ...]:
        return tuple(bay for bay in self.bays if bay.is_active)

    @property
    def bay_capacity(self) -> int:
        """Number of jobs the in-bay lane can hold."""
        return len(self.active_bays)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        data = asdict(self)
        data["bays"] = [asdict(bay) for bay in self.bays]
        data["confirmation_policy"] = self.confirmation_policy.value
        data["lane_capacity"] = dict(self.lane_capacity)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShopSettings":
        """
        Deserialize from dictionary.

        Missing keys fall back to defaults.

        Raises:
            ValueError: If a value is out of range or unknown
        """
        bays = data.get("bays")
        timeout = float(data.get("commit_timeout_seconds", 10.0))
        if timeout <= 0:
            raise ValueError(f"commit_timeout_seconds must be positive, got {timeout}")

        lane_capacity = {str(k): int(v) for k, v in (data.get("lane_capacity") or {}).items()}
        for status, capacity in lane_capacity.items():
            if capacity < 0:
                raise ValueError(f"Lane capacity for '{status}' must not be negative")

        return cls(
            shop_name=data.get("shop_name", "Service Shop"),
            bays=tuple(BayConfiguration(**bay) for bay in bays) if bays is not None else DEFAULT_BAYS,
            confirmation_policy=ConfirmationPolicy(data.get("confirmation_policy", "soft")),
            commit_timeout_seconds=timeout,
            lane_capacity=lane_capacity,
        )

    @classmethod
    def from_json(cls, json_str: str) -> "ShopSettings":
        return cls.from_dict(json.loads(json_str))


DEFAULT_SHOP_SETTINGS = ShopSettings()


def load_settings(path: Optional[str] = None) -> ShopSettings:
    """
    Load settings from a JSON file.

    Args:
        path: Settings file (defaults to $BAYBOARD_SETTINGS)

    Returns:
        Loaded settings, or defaults when no file is configured
    """
    path = path or os.environ.get(ENV_SETTINGS_PATH)
    if not path:
        return DEFAULT_SHOP_SETTINGS
    return ShopSettings.from_json(Path(path).read_text())
