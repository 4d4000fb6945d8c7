"""Factory for venue-specific gateway clients."""
from __future__ import annotations
from typing import Optional

from core.clock import Clock
from core.config import VenueSettings, load_config, load_credential, parse_venue
from core.types import Credential, Venue
from gateway.base import GatewayClient, MessageCallback
from gateway.transport import Transport


def create_client(
    venue: str | Venue,
    credential: Optional[Credential] = None,
    config: Optional[dict] = None,
    transport: Optional[Transport] = None,
    clock: Optional[Clock] = None,
    on_message: Optional[MessageCallback] = None,
) -> GatewayClient:
    """Create a gateway client.

    Args:
        venue: "binance", "commex", "bybit", "kucoin", "okx" or "gateio"
        credential: API credential; read from the environment when omitted
        config: Loaded YAML config; the packaged ``core/default.yaml`` when omitted
        transport: Custom transport, mainly for tests
        clock: Custom clock, mainly for tests
        on_message: Optional callback for progress messages
    """
    venue = parse_venue(venue)
    credential = credential or load_credential(venue)
    if config is None:
        config = load_config()
    settings = VenueSettings.from_config(venue, config)
    kwargs = dict(settings=settings, transport=transport, clock=clock, on_message=on_message)

    if venue == Venue.BINANCE:
        from gateway.binance_rest import BinanceClient
        return BinanceClient(credential, **kwargs)
    elif venue == Venue.COMMEX:
        from gateway.commex_rest import CommexClient
        return CommexClient(credential, **kwargs)
    elif venue == Venue.BYBIT:
        from gateway.bybit_rest import BybitClient
        return BybitClient(credential, **kwargs)
    elif venue == Venue.KUCOIN:
        from gateway.kucoin_rest import KucoinClient
        return KucoinClient(credential, **kwargs)
    elif venue == Venue.OKX:
        from gateway.okx_rest import OkxClient
        return OkxClient(credential, **kwargs)
    else:
        from gateway.gateio_rest import GateIoClient
        return GateIoClient(credential, **kwargs)
