"""Commex REST client.

Same signing and error dialect as Binance, served from ``api/v1`` paths.
"""
from __future__ import annotations
from typing import Dict, Optional

from core.types import Venue
from gateway.binance_rest import BinanceClient


class CommexClient(BinanceClient):
    venue = Venue.COMMEX

    PATHS: Dict[str, Optional[str]] = {
        "system_status": "/sapi/v1/system/status",
        "account_status": "/sapi/v1/account/status",
        "user_asset": "/api/v3/asset/getUserAsset",
        "withdraw": "/api/v1/capital/withdraw/apply",
        "withdraw_history": "/api/v1/capital/withdraw/history",
        "coin_config": "/api/v1/capital/config/getall",
        "deposit_address": "/api/v1/capital/deposit/address",
        "deposit_history": "/api/v1/capital/deposit/hisrec",
        "exchange_info": "/api/v1/exchangeInfo",
        "ticker_price": "/api/v1/ticker/price",
        "order": "/api/v1/order",
    }
