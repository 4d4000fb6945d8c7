"""OKX V5 funding REST client.

Auth headers ``OK-ACCESS-*`` with an ISO-8601 millisecond timestamp.
Responses are ``{code, msg, data}`` with ``code == "0"`` on success; known
error codes are named through the static table in ``gateway.envelopes``.
"""
from __future__ import annotations
import logging
from decimal import Decimal
from typing import List, Optional

from core.errors import AssetNotFoundError, VenueError
from core.quantity import fmt_decimal
from core.types import HttpMethod, NetworkInfo, Venue
from gateway.base import GatewayClient, HistoryFields
from gateway.envelopes import unwrap_okx
from gateway.settlement import StatusTable
from gateway.signing import OkxSigner, SigningStrategy

log = logging.getLogger(__name__)

# On-chain withdrawal destination
DEST_ON_CHAIN = "4"

# -3 canceling, -2 canceled, -1 failed, 0 waiting, 1 broadcasting, 2 success,
# 4/5/6/8/9/12 manual review, 7 approved, 10 waiting transfer, 15/16/17 review.
WITHDRAWAL_STATUSES = StatusTable(
    pending=[-3, 0, 1, 4, 5, 6, 7, 8, 9, 10, 12, 15, 16, 17],
    success=[2],
    failure=[-2, -1],
)

# 0 waiting confirmation, 1 credited, 2 successful, 8 pending on suspended
# deposits, 11-14 rejected / frozen / intercepted.
DEPOSIT_STATUSES = StatusTable(pending=[0, 1, 8], success=[2], failure=[11, 12, 13, 14])


def okx_chain(currency: str, network: str) -> str:
    """OKX chain ids are ``CCY-Network``; accept either form."""
    prefix = f"{currency.upper()}-"
    return network if network.upper().startswith(prefix) else f"{prefix}{network}"


class OkxClient(GatewayClient):
    venue = Venue.OKX
    unwrapper = staticmethod(unwrap_okx)

    WITHDRAWAL_FIELDS = HistoryFields(id="wdId", status="state", tx_hash="txId", amount="amt")
    WITHDRAWAL_STATUS = WITHDRAWAL_STATUSES
    DEPOSIT_FIELDS = HistoryFields(id="txId", status="state", tx_hash="txId", amount="amt")
    DEPOSIT_STATUS = DEPOSIT_STATUSES

    def _make_signer(self) -> SigningStrategy:
        return OkxSigner()

    async def login(self) -> None:
        events = await self._call(HttpMethod.GET, "/api/v5/system/status", needs_auth=False)
        ongoing = [e for e in events or [] if e.get("state") == "ongoing"]
        if ongoing:
            raise VenueError(None, f"System maintenance: {ongoing[0].get('title', '')}",
                             "/api/v5/system/status")
        await self._call(HttpMethod.GET, "/api/v5/asset/balances")
        self._message("Logged in")

    async def get_balance(self, currency: str) -> Decimal:
        def parse(balances: List[dict]) -> Decimal:
            for bal in balances:
                if bal["ccy"].upper() == currency.upper():
                    return Decimal(str(bal["availBal"]))
            return Decimal(0)
        return await self._call(HttpMethod.GET, "/api/v5/asset/balances",
                                query={"ccy": currency.upper()}, parse=parse)

    async def get_deposit_address(self, currency: str, network: str) -> str:
        chain = okx_chain(currency, network)

        def parse(addresses: List[dict]) -> str:
            for entry in addresses:
                if entry["chain"].upper() == chain.upper():
                    return entry["addr"]
            raise AssetNotFoundError(f"No {currency} deposit address on {chain}")
        return await self._call(HttpMethod.GET, "/api/v5/asset/deposit-address",
                                query={"ccy": currency.upper()}, parse=parse)

    async def get_network_info(self, currency: str, network: str) -> NetworkInfo:
        chain = okx_chain(currency, network)

        def parse(currencies: List[dict]) -> NetworkInfo:
            for entry in currencies:
                if entry["chain"].upper() == chain.upper():
                    return NetworkInfo(
                        currency=currency.upper(),
                        network=entry["chain"],
                        precision=int(entry["wdTickSz"]),
                        min_amount=Decimal(str(entry["minWd"])),
                        fee=Decimal(str(entry["minFee"])),
                    )
            raise AssetNotFoundError(f"Chain {chain} not available for {currency}")
        return await self._call(HttpMethod.GET, "/api/v5/asset/currencies",
                                query={"ccy": currency.upper()}, parse=parse)

    async def _submit_withdrawal(self, currency: str, amount: Decimal, address: str,
                                 network: str, address_tag: Optional[str]) -> str:
        info = await self.get_network_info(currency, network)
        to_addr = f"{address}:{address_tag}" if address_tag else address
        body = {
            "ccy": currency.upper(),
            "amt": fmt_decimal(amount),
            "dest": DEST_ON_CHAIN,
            "toAddr": to_addr,
            "chain": info.network,
            "fee": fmt_decimal(info.fee),
        }
        return await self._call(HttpMethod.POST, "/api/v5/asset/withdrawal",
                                body=body, parse=lambda d: str(d[0]["wdId"]))

    async def _withdrawal_history(self, currency: str, withdrawal_id: str) -> List[dict]:
        return await self._call(HttpMethod.GET, "/api/v5/asset/withdrawal-history",
                                query={"wdId": withdrawal_id}, parse=list)

    async def _deposit_history(self, tx_hash: str, currency: Optional[str]) -> List[dict]:
        return await self._call(
            HttpMethod.GET, "/api/v5/asset/deposit-history",
            query={"ccy": currency.upper() if currency else None, "txId": tx_hash},
            parse=list,
        )
