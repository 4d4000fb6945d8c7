"""Bybit V5 asset REST client with HMAC-SHA256 authentication.

Signed string is ``timestamp + api_key + recv_window + payload`` where the
payload is the query string for GET and the raw JSON body for POST.
Responses are wrapped in ``{retCode, retMsg, result}``.
"""
from __future__ import annotations
import logging
from decimal import Decimal
from typing import List, Optional

from core.errors import AssetNotFoundError
from core.quantity import fmt_decimal
from core.types import HttpMethod, NetworkInfo, Venue
from gateway.base import GatewayClient, HistoryFields
from gateway.envelopes import unwrap_bybit
from gateway.settlement import StatusTable
from gateway.signing import BybitSigner, SigningStrategy

log = logging.getLogger(__name__)

WITHDRAWAL_STATUSES = StatusTable(
    pending=["SecurityCheck", "Pending"],
    success=["success", "BlockchainConfirmed"],
    failure=["CancelByUser", "Reject", "Fail", "MoreInformationRequired"],
)

# 0 unknown, 1 to be confirmed, 2 processing, 3 success, 4 failed,
# 10011 pending credit to funding pool, 10012 credited to funding pool.
DEPOSIT_STATUSES = StatusTable(pending=[0, 1, 2, 10011], success=[3, 10012], failure=[4])


def _find_chain(rows: List[dict], currency: str, network: str) -> dict:
    for row in rows:
        if row["coin"].upper() != currency.upper():
            continue
        for chain in row["chains"]:
            if chain["chain"].upper() == network.upper():
                return chain
        raise AssetNotFoundError(f"Chain {network} not available for {currency}")
    raise AssetNotFoundError(f"Coin {currency} not listed")


class BybitClient(GatewayClient):
    """Async REST client for the Bybit V5 asset endpoints."""

    venue = Venue.BYBIT
    unwrapper = staticmethod(unwrap_bybit)

    WITHDRAWAL_FIELDS = HistoryFields(id="withdrawId", status="status", tx_hash="txID")
    WITHDRAWAL_STATUS = WITHDRAWAL_STATUSES
    DEPOSIT_FIELDS = HistoryFields(id="txID", status="status", tx_hash="txID", amount="amount")
    DEPOSIT_STATUS = DEPOSIT_STATUSES

    def _make_signer(self) -> SigningStrategy:
        return BybitSigner(recv_window=self.settings.recv_window)

    async def login(self) -> None:
        await self._call(HttpMethod.GET, "/v5/market/time", needs_auth=False)
        await self._call(HttpMethod.GET, "/v5/user/query-api")
        self._message("Logged in")

    async def get_balance(self, currency: str) -> Decimal:
        return await self._call(
            HttpMethod.GET, "/v5/asset/transfer/query-account-coin-balance",
            query={"accountType": self.settings.account_type, "coin": currency.upper()},
            parse=lambda r: Decimal(str(r["balance"]["transferBalance"])),
        )

    async def get_deposit_address(self, currency: str, network: str) -> str:
        def parse(result: dict) -> str:
            for chain in result["chains"]:
                if chain["chain"].upper() == network.upper():
                    return chain["addressDeposit"]
            raise AssetNotFoundError(f"No {currency} deposit address on {network}")
        return await self._call(
            HttpMethod.GET, "/v5/asset/deposit/query-address",
            query={"coin": currency.upper(), "chainType": network}, parse=parse,
        )

    async def get_network_info(self, currency: str, network: str) -> NetworkInfo:
        def parse(result: dict) -> NetworkInfo:
            chain = _find_chain(result["rows"], currency, network)
            return NetworkInfo(
                currency=currency.upper(),
                network=chain["chain"],
                precision=int(chain["minAccuracy"]),
                min_amount=Decimal(str(chain["withdrawMin"])),
                fee=Decimal(str(chain["withdrawFee"] or "0")),
            )
        return await self._call(HttpMethod.GET, "/v5/asset/coin/query-info",
                                query={"coin": currency.upper()}, parse=parse)

    async def _submit_withdrawal(self, currency: str, amount: Decimal, address: str,
                                 network: str, address_tag: Optional[str]) -> str:
        body = {
            "coin": currency.upper(),
            "chain": network,
            "address": address,
            "tag": address_tag,
            "amount": fmt_decimal(amount),
            "timestamp": self.clock.now_ms(),
            "accountType": self.settings.account_type,
        }
        return await self._call(HttpMethod.POST, "/v5/asset/withdraw/create",
                                body=body, parse=lambda r: str(r["id"]))

    async def _withdrawal_history(self, currency: str, withdrawal_id: str) -> List[dict]:
        return await self._call(
            HttpMethod.GET, "/v5/asset/withdraw/query-record",
            query={"withdrawID": withdrawal_id},
            parse=lambda r: r["rows"],
        )

    async def _deposit_history(self, tx_hash: str, currency: Optional[str]) -> List[dict]:
        return await self._call(
            HttpMethod.GET, "/v5/asset/deposit/query-record",
            query={"coin": currency.upper() if currency else None},
            parse=lambda r: r["rows"],
        )
