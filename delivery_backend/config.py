from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DeliveryConfig:
    strict_transitions: bool = _env_flag("DELIVERY_STRICT_TRANSITIONS", True)
    courier_exclusive: bool = _env_flag("DELIVERY_COURIER_EXCLUSIVE", True)
    search_cache_enabled: bool = _env_flag("SEARCH_CACHE_ENABLED", True)
    search_cache_ttl: int = int(os.getenv("SEARCH_CACHE_TTL", "300"))
    # seconds a courier has to accept a delivery request
    assignment_request_ttl: int = int(os.getenv("ASSIGNMENT_REQUEST_TTL", "300"))


DEFAULT_CONFIG = DeliveryConfig()
