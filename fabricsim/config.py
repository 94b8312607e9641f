from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, List

from .errors import ConfigError

# RFC-1918 private ranges, blocked at the perimeter by default
DEFAULT_BLOCKED_RANGES = ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")


@dataclass
class SimConfig:
    # Admission
    dos_rate_limit: int = 10            # requests per source per window before auto-ban
    dos_window_size: int = 50           # ticks per rate-limit window (<= 0 disables resets)
    blocked_ranges: List[str] = field(default_factory=lambda: list(DEFAULT_BLOCKED_RANGES))

    # Autoscaling
    min_threshold: int = 2
    max_threshold: int = 5
    cooldown: int = 10
    initial_workers: int = 10           # per job class

    # Arrivals
    max_process_time: int = 20
    burst_probability: float = 1 / 11
    max_burst: int = 80
    prefill_per_worker: int = 0
    attacker_addresses: List[str] = field(default_factory=list)
    attack_share: float = 0.0

    # Simulation
    total_ticks: int = 10000
    seed: int = 42

    def validate(self) -> "SimConfig":
        """Raise ConfigError on the first parameter the core cannot run with."""
        if self.cooldown < 1:
            raise ConfigError(f"cooldown must be >= 1, got {self.cooldown}")
        if self.max_process_time < 1:
            raise ConfigError(f"max_process_time must be >= 1, got {self.max_process_time}")
        if self.min_threshold < 0 or self.max_threshold < 0:
            raise ConfigError("thresholds must be non-negative")
        if self.min_threshold > self.max_threshold:
            raise ConfigError(
                f"min_threshold ({self.min_threshold}) exceeds max_threshold ({self.max_threshold})"
            )
        if self.initial_workers < 0:
            raise ConfigError(f"initial_workers must be >= 0, got {self.initial_workers}")
        if self.total_ticks < 0:
            raise ConfigError(f"total_ticks must be >= 0, got {self.total_ticks}")
        if self.dos_rate_limit < 0:
            raise ConfigError(f"dos_rate_limit must be >= 0, got {self.dos_rate_limit}")
        if not 0.0 <= self.burst_probability <= 1.0:
            raise ConfigError(f"burst_probability must lie in [0, 1], got {self.burst_probability}")
        if not 0.0 <= self.attack_share <= 1.0:
            raise ConfigError(f"attack_share must lie in [0, 1], got {self.attack_share}")
        if self.attack_share > 0 and not self.attacker_addresses:
            raise ConfigError("attack_share > 0 requires at least one attacker address")
        if self.max_burst < 1:
            raise ConfigError(f"max_burst must be >= 1, got {self.max_burst}")
        if self.prefill_per_worker < 0:
            raise ConfigError(f"prefill_per_worker must be >= 0, got {self.prefill_per_worker}")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def replace(self, **overrides: Any) -> "SimConfig":
        """Copy with the non-None overrides applied (argparse defaults are None)."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return type(self).from_dict(data)


def load_config(path: str | Path) -> SimConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{path}: not valid JSON ({e})") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a JSON object at top level")
    return SimConfig.from_dict(data)
