"""Gateway package: venue-agnostic treasury clients.

Re-exports the client interface, the building blocks and the factory so
consumers can write::

    from gateway import GatewayClient, create_client
"""
from gateway.base import GatewayClient, HistoryFields
from gateway.envelopes import (
    unwrap_binance,
    unwrap_bybit,
    unwrap_gateio,
    unwrap_kucoin,
    unwrap_okx,
)
from gateway.factory import create_client
from gateway.pipeline import RequestPipeline
from gateway.settlement import SettlementPoller, StatusTable
from gateway.signing import (
    BinanceSigner,
    BybitSigner,
    GateIoSigner,
    KucoinSigner,
    OkxSigner,
    SigningStrategy,
)
from gateway.transport import AiohttpTransport, Transport

__all__ = [
    "GatewayClient",
    "HistoryFields",
    "RequestPipeline",
    "SettlementPoller",
    "StatusTable",
    "SigningStrategy",
    "BinanceSigner",
    "BybitSigner",
    "KucoinSigner",
    "OkxSigner",
    "GateIoSigner",
    "Transport",
    "AiohttpTransport",
    "unwrap_binance",
    "unwrap_bybit",
    "unwrap_kucoin",
    "unwrap_okx",
    "unwrap_gateio",
    "create_client",
]
