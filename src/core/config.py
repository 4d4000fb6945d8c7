"""Configuration loading: YAML venue settings, .env credentials, logging."""
from __future__ import annotations
import logging
import os
import sys
from dataclasses import dataclass, fields
from typing import Optional

import yaml
from dotenv import load_dotenv

from core.errors import GatewayConfigError
from core.types import Credential, Venue

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "default.yaml")

DEFAULT_BASE_URLS = {
    Venue.BINANCE: "https://api.binance.com",
    Venue.COMMEX: "https://api.commex.com",
    Venue.BYBIT: "https://api.bybit.com",
    Venue.KUCOIN: "https://api.kucoin.com",
    Venue.OKX: "https://www.okx.com",
    Venue.GATEIO: "https://api.gateio.ws",
}


def setup_logging(level: str = "INFO") -> None:
    fmt = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )


def load_config(path: Optional[str] = None) -> dict:
    config_path = path or DEFAULT_CONFIG_PATH
    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def parse_venue(venue: str | Venue) -> Venue:
    try:
        return Venue(str(venue.value if isinstance(venue, Venue) else venue).lower())
    except ValueError:
        names = ", ".join(v.value for v in Venue)
        raise GatewayConfigError(f"Unsupported venue: {venue!r}. Use one of: {names}") from None


def load_credential(venue: str | Venue) -> Credential:
    """Read ``{VENUE}_API_KEY``, ``{VENUE}_API_SECRET`` and ``{VENUE}_PASSPHRASE``."""
    load_dotenv()
    prefix = parse_venue(venue).value.upper()
    api_key = os.environ.get(f"{prefix}_API_KEY", "")
    api_secret = os.environ.get(f"{prefix}_API_SECRET", "")
    if not api_key or not api_secret:
        raise GatewayConfigError(f"{prefix}_API_KEY and {prefix}_API_SECRET must be set")
    return Credential(api_key, api_secret, os.environ.get(f"{prefix}_PASSPHRASE") or None)


@dataclass(slots=True)
class VenueSettings:
    base_url: str = ""
    request_timeout_s: float = 30.0
    withdrawal_interval_s: float = 10.0
    withdrawal_max_attempts: int = 500
    deposit_interval_s: float = 5.0
    deposit_max_attempts: int = 1000
    settlement_deadline_s: Optional[float] = None
    transient_retries: int = 3
    transient_backoff_s: float = 2.0
    recv_window: Optional[int] = None
    key_version: int = 2
    account_type: str = "FUND"

    @classmethod
    def from_config(cls, venue: str | Venue, config: Optional[dict] = None) -> VenueSettings:
        venue = parse_venue(venue)
        config = config or {}
        merged = dict(config.get("defaults") or {})
        merged.update((config.get("venues") or {}).get(venue.value) or {})
        known = {f.name for f in fields(cls)}
        unknown = set(merged) - known
        if unknown:
            log.warning("Ignoring unknown %s settings: %s", venue.value, sorted(unknown))
        settings = cls(**{k: v for k, v in merged.items() if k in known})
        if not settings.base_url:
            settings.base_url = DEFAULT_BASE_URLS[venue]
        settings.base_url = settings.base_url.rstrip("/")
        if settings.withdrawal_max_attempts < 1 or settings.deposit_max_attempts < 1:
            raise GatewayConfigError(f"{venue.value}: max attempts must be at least 1")
        return settings
