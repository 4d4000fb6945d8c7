"""Binance spot wallet REST client.

Auth: ``X-MBX-APIKEY`` header plus an HMAC-SHA256 ``signature`` query
parameter computed over the full query string. Success bodies carry no
envelope; errors come back as ``{code, msg}``.

Commex speaks the same dialect under different paths, see ``commex_rest``.
"""
from __future__ import annotations
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.errors import AccountStatusError, AssetNotFoundError, VenueError
from core.quantity import flatten, fmt_decimal, precision_from_step
from core.types import CalculationBase, HttpMethod, NetworkInfo, OrderResult, OrderSide, Venue
from gateway.base import GatewayClient, HistoryFields
from gateway.envelopes import unwrap_binance
from gateway.settlement import StatusTable
from gateway.signing import BinanceSigner, SigningStrategy

log = logging.getLogger(__name__)

LOT_SIZE_REJECTED = -1013
INVALID_SYMBOL = -1121
MAX_ORDER_ATTEMPTS = 50
ORDER_SHRINK = Decimal("0.995")
DEFAULT_SLIPPAGE = Decimal("0.998")

# Withdrawal status: 0 email sent, 1 cancelled, 2 awaiting approval,
# 3 rejected, 4 processing, 5 failure, 6 completed.
WITHDRAWAL_STATUSES = StatusTable(pending=[0, 2, 4], success=[6], failure=[1, 3, 5])

# Deposit status: 0 pending, 1 success, 6 credited but cannot withdraw,
# 7 wrong deposit, 8 waiting user confirm.
DEPOSIT_STATUSES = StatusTable(pending=[0, 6, 8], success=[1], failure=[7])


def _find_network(coins: List[dict], currency: str, network: str) -> dict:
    coin = next((c for c in coins if c["coin"].upper() == currency.upper()), None)
    if coin is None:
        raise AssetNotFoundError(f"Currency {currency} not listed")
    for net in coin["networkList"]:
        if net["network"].upper() == network.upper():
            return net
    raise AssetNotFoundError(f"Network {network} not available for {currency}")


def _lot_step(info: dict, symbol: str) -> Decimal:
    for sym in info["symbols"]:
        if sym["symbol"] != symbol:
            continue
        for f in sym["filters"]:
            if f["filterType"] == "LOT_SIZE":
                return Decimal(str(f["stepSize"]))
    raise AssetNotFoundError(f"No LOT_SIZE filter for {symbol}")


class BinanceClient(GatewayClient):
    """Binance wallet operations plus the lot-size aware market order."""

    venue = Venue.BINANCE
    unwrapper = staticmethod(unwrap_binance)

    PATHS: Dict[str, Optional[str]] = {
        "system_status": "/sapi/v1/system/status",
        "account_status": "/sapi/v1/account/status",
        "user_asset": "/sapi/v3/asset/getUserAsset",
        "withdraw": "/sapi/v1/capital/withdraw/apply",
        "withdraw_history": "/sapi/v1/capital/withdraw/history",
        "coin_config": "/sapi/v1/capital/config/getall",
        "deposit_address": "/sapi/v1/capital/deposit/address",
        "deposit_history": "/sapi/v1/capital/deposit/hisrec",
        "exchange_info": "/api/v3/exchangeInfo",
        "ticker_price": "/api/v3/ticker/price",
        "order": "/api/v3/order",
    }

    WITHDRAWAL_FIELDS = HistoryFields(id="id", status="status", tx_hash="txId")
    WITHDRAWAL_STATUS = WITHDRAWAL_STATUSES
    DEPOSIT_FIELDS = HistoryFields(id="txId", status="status", tx_hash="txId", amount="amount")
    DEPOSIT_STATUS = DEPOSIT_STATUSES

    def _make_signer(self) -> SigningStrategy:
        return BinanceSigner(recv_window=self.settings.recv_window)

    def _path(self, name: str) -> str:
        path = self.PATHS.get(name)
        if path is None:
            raise self._unsupported(name)
        return path

    # --- Account ---

    async def login(self) -> None:
        status = await self._call(HttpMethod.GET, self._path("system_status"), needs_auth=False)
        if status.get("status", 0) != 0:
            raise VenueError(status.get("status"), status.get("msg", "System maintenance"),
                             self._path("system_status"))
        account = await self._call(HttpMethod.GET, self._path("account_status"))
        if account.get("data") != "Normal":
            raise AccountStatusError(None, f"Account status is {account.get('data')!r}",
                                     self._path("account_status"))
        self._message("Logged in, account status Normal")

    async def get_balance(self, currency: str) -> Decimal:
        def parse(assets: List[dict]) -> Decimal:
            for asset in assets:
                if asset["asset"].upper() == currency.upper():
                    return Decimal(str(asset["free"]))
            return Decimal(0)
        return await self._call(HttpMethod.POST, self._path("user_asset"),
                                query={"asset": currency.upper()}, parse=parse)

    async def get_deposit_address(self, currency: str, network: str) -> str:
        return await self._call(
            HttpMethod.GET, self._path("deposit_address"),
            query={"coin": currency.upper(), "network": network},
            parse=lambda d: d["address"],
        )

    async def get_network_info(self, currency: str, network: str) -> NetworkInfo:
        def parse(coins: List[dict]) -> NetworkInfo:
            net = _find_network(coins, currency, network)
            return NetworkInfo(
                currency=currency.upper(),
                network=net["network"],
                precision=precision_from_step(net["withdrawIntegerMultiple"]),
                min_amount=Decimal(str(net["withdrawMin"])),
                fee=Decimal(str(net["withdrawFee"])),
            )
        return await self._call(HttpMethod.GET, self._path("coin_config"), parse=parse)

    async def get_withdrawal_multiple(self, currency: str, network: str) -> Decimal:
        return await self._call(
            HttpMethod.GET, self._path("coin_config"),
            parse=lambda coins: Decimal(str(_find_network(coins, currency, network)["withdrawIntegerMultiple"])),
        )

    # --- Withdrawal ---

    async def _submit_withdrawal(self, currency: str, amount: Decimal, address: str,
                                 network: str, address_tag: Optional[str]) -> str:
        query = {
            "coin": currency.upper(),
            "address": address,
            "amount": fmt_decimal(amount),
            "network": network,
            "addressTag": address_tag,
        }
        return await self._call(HttpMethod.POST, self._path("withdraw"),
                                query=query, parse=lambda d: str(d["id"]))

    async def _withdrawal_history(self, currency: str, withdrawal_id: str) -> List[dict]:
        return await self._call(HttpMethod.GET, self._path("withdraw_history"),
                                query={"coin": currency.upper()}, parse=list)

    async def withdraw_all(self, currency: str, address: str, network: str,
                           wait_for_approval: bool = True, address_tag: Optional[str] = None):
        """Withdraw the whole free balance, sized to the network's withdrawal multiple."""
        balance = await self.get_balance(currency)
        multiple = await self.get_withdrawal_multiple(currency, network)
        amount = flatten(balance, multiple)
        self._message(f"Starting withdrawal of {fmt_decimal(amount)} {currency.upper()}")
        return await self.withdraw(currency, amount, address, network,
                                   wait_for_approval=wait_for_approval, address_tag=address_tag)

    # --- Deposit ---

    async def _deposit_history(self, tx_hash: str, currency: Optional[str]) -> List[dict]:
        query: Dict[str, Any] = {"txId": tx_hash}
        if currency:
            query["coin"] = currency.upper()
        return await self._call(HttpMethod.GET, self._path("deposit_history"),
                                query=query, parse=list)

    # --- Spot trading ---

    async def get_price(self, symbol: str) -> Decimal:
        return await self._call(
            HttpMethod.GET, self._path("ticker_price"), query={"symbol": symbol},
            needs_auth=False, parse=lambda d: Decimal(str(d["price"])),
        )

    async def resolve_symbol(self, base: str, quote: str, side: OrderSide) -> tuple[str, OrderSide]:
        """Find the listed pair for base/quote, flipping the side if only quote/base trades."""
        symbol = f"{base}{quote}".upper()
        try:
            await self.get_price(symbol)
            return symbol, side
        except VenueError as e:
            if e.code != INVALID_SYMBOL:
                raise
        reversed_side = OrderSide.SELL if side == OrderSide.BUY else OrderSide.BUY
        self._message(f"{symbol} not listed, using {quote.upper()}{base.upper()}")
        return f"{quote}{base}".upper(), reversed_side

    async def get_trade_step_size(self, symbol: str) -> Decimal:
        return await self._call(
            HttpMethod.GET, self._path("exchange_info"), query={"symbol": symbol},
            needs_auth=False, parse=lambda info: _lot_step(info, symbol),
        )

    async def flatten_order_amount(self, symbol: str, amount: Decimal, steps_down: int = 0) -> Decimal:
        return flatten(amount, await self.get_trade_step_size(symbol), steps_down)

    async def get_amount_in(self, currency_in: str, currency_out: str, amount_out: Decimal | str,
                            slippage: Decimal = DEFAULT_SLIPPAGE) -> Decimal:
        """Amount of ``currency_in`` needed to end up with ``amount_out`` of ``currency_out``."""
        pair = f"{currency_in}{currency_out}".upper()
        symbol, _ = await self.resolve_symbol(currency_in, currency_out, OrderSide.BUY)
        price = await self.get_price(symbol)
        if symbol != pair:
            price = 1 / price
        self._message(f"Price: {fmt_decimal(price)}")
        return Decimal(str(amount_out)) / slippage / price

    async def place_market_order(self, symbol: str, side: OrderSide,
                                 quantity: Decimal | str) -> OrderResult:
        """Market order that shrinks itself until the LOT_SIZE filter accepts it."""
        step = await self.get_trade_step_size(symbol)
        amount = flatten(Decimal(str(quantity)), step)
        for attempt in range(1, MAX_ORDER_ATTEMPTS + 1):
            if amount <= 0:
                raise VenueError(LOT_SIZE_REJECTED,
                                 f"{symbol} order amount flattened to zero after {attempt - 1} attempts",
                                 self._path("order"))
            try:
                data = await self._call(HttpMethod.POST, self._path("order"), query={
                    "symbol": symbol,
                    "side": side.value,
                    "type": "MARKET",
                    "quantity": fmt_decimal(amount),
                })
            except VenueError as e:
                if e.code != LOT_SIZE_REJECTED:
                    raise
                self._message(f"{symbol} order of {fmt_decimal(amount)} rejected by LOT_SIZE, retrying")
                amount = flatten(amount * ORDER_SHRINK, step)
                continue
            self._message(f"Executed order {symbol}, amount: {fmt_decimal(amount)}, side: {side.value}")
            return OrderResult(
                order_id=str(data.get("orderId", "")),
                symbol=symbol,
                side=side,
                quantity=amount,
                attempts=attempt,
                executed_qty=Decimal(str(data.get("executedQty") or "0")),
                quote_qty=Decimal(str(data.get("cummulativeQuoteQty") or "0")),
                raw=data,
            )
        raise VenueError(LOT_SIZE_REJECTED,
                         f"Order not accepted after {MAX_ORDER_ATTEMPTS} attempts",
                         self._path("order"))

    async def forced_market_order(self, base: str, quote: str, side: OrderSide, amount: Decimal | str,
                                  calculation_base: CalculationBase = CalculationBase.BASE) -> OrderResult:
        """Market order on whichever of base/quote or quote/base is listed.

        When only the reversed pair trades, the side and the denomination of
        ``amount`` flip with it. Quote-denominated amounts are converted to
        base units at the current price before sizing.
        """
        symbol, side = await self.resolve_symbol(base, quote, side)
        if symbol != f"{base}{quote}".upper():
            base, quote = quote, base
            calculation_base = (CalculationBase.BASE if calculation_base == CalculationBase.QUOTE
                                else CalculationBase.QUOTE)
        if calculation_base == CalculationBase.QUOTE:
            amount = await self.get_amount_in(base, quote, amount)
        return await self.place_market_order(symbol, side, amount)
