"""Per-venue response unwrapping.

An unwrapper takes the raw transport response and returns the payload, or
raises a canonical error when the venue reported a failure. Several venues
return HTTP 200 with an error code inside the body, so the body is always
checked, not just the status.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Tuple, Type

import orjson

from core.errors import (
    AccountStatusError, DeserializationError, RequestFailedError, VenueError,
)
from core.types import TransportResponse

log = logging.getLogger(__name__)

Unwrapper = Callable[[TransportResponse, str], Any]


def _decode(resp: TransportResponse, endpoint: str) -> Any:
    if not resp.body:
        if resp.ok:
            return None
        raise RequestFailedError(endpoint, resp.status, resp.body)
    try:
        return orjson.loads(resp.body)
    except orjson.JSONDecodeError:
        if resp.ok:
            raise DeserializationError(
                "Response body is not JSON", endpoint, resp.status, resp.body,
            ) from None
        raise RequestFailedError(endpoint, resp.status, resp.body) from None


def _venue_error(code, message, resp: TransportResponse, endpoint: str,
                 cls: Type[VenueError] = VenueError, name: str | None = None) -> VenueError:
    log.warning("%s rejected: code=%s msg=%s", endpoint, code, message)
    return cls(code, message or "", endpoint, resp.status, resp.body, name=name)


# --- Binance / Commex ---

def unwrap_binance(resp: TransportResponse, endpoint: str) -> Any:
    """No envelope on success; errors are ``{code, msg}``."""
    data = _decode(resp, endpoint)
    if isinstance(data, dict) and "code" in data and "msg" in data:
        code = data["code"]
        if not resp.ok or (isinstance(code, int) and code < 0):
            raise _venue_error(code, data["msg"], resp, endpoint)
    if not resp.ok:
        raise RequestFailedError(endpoint, resp.status, resp.body)
    return data


# --- ByBit ---

def unwrap_bybit(resp: TransportResponse, endpoint: str) -> Any:
    """``{retCode, retMsg, result}``; success iff retCode == 0."""
    data = _decode(resp, endpoint)
    if not isinstance(data, dict) or "retCode" not in data:
        if not resp.ok:
            raise RequestFailedError(endpoint, resp.status, resp.body)
        raise DeserializationError("Missing retCode envelope", endpoint, resp.status, resp.body)
    if data["retCode"] != 0:
        raise _venue_error(data["retCode"], data.get("retMsg"), resp, endpoint)
    return data.get("result")


# --- KuCoin ---

KUCOIN_SUCCESS = "200000"


def unwrap_kucoin(resp: TransportResponse, endpoint: str) -> Any:
    """``{code, data, msg}``; success iff code == "200000"."""
    data = _decode(resp, endpoint)
    if not isinstance(data, dict) or "code" not in data:
        if not resp.ok:
            raise RequestFailedError(endpoint, resp.status, resp.body)
        raise DeserializationError("Missing code envelope", endpoint, resp.status, resp.body)
    if str(data["code"]) != KUCOIN_SUCCESS:
        raise _venue_error(data["code"], data.get("msg"), resp, endpoint)
    return data.get("data")


# --- OKX ---

# Static code table for the funding (58xxx) and authentication (50xxx) errors.
# Codes in OKX_ACCOUNT_CODES mean the account itself is restricted.
OKX_ERROR_NAMES: Dict[str, str] = {
    "50100": "ApiFrozen",
    "50101": "ApiKeyEnvironmentMismatch",
    "50102": "TimestampExpired",
    "50103": "MissingAccessKey",
    "50104": "MissingPassphrase",
    "50105": "WrongPassphrase",
    "50106": "MissingTimestamp",
    "50107": "InvalidTimestampFormat",
    "50110": "IpNotWhitelisted",
    "50111": "InvalidAccessKey",
    "50113": "InvalidSignature",
    "50114": "InvalidAuthorization",
    "50119": "ApiKeyNotFound",
    "58002": "PleaseActivateSavings",
    "58003": "CurrencyNotSupportedBySavings",
    "58004": "AccountBlocked",
    "58005": "RedemptionLimitExceeded",
    "58006": "ServiceUnavailableForCurrency",
    "58007": "AbnormalAssetsInterface",
    "58100": "TradingAccountRestricted",
    "58101": "TransferSuspended",
    "58102": "TooFrequentTransfers",
    "58104": "TransferRestrictedP2P",
    "58105": "TransferRestrictedP2PAssets",
    "58106": "CompleteVerificationFirst",
    "58107": "CrossMarginTransferRestricted",
    "58110": "TransferTemporarilySuspended",
    "58111": "FundsTransferSuspended",
    "58112": "FundsTransferFailed",
    "58113": "CurrencyNotTransferable",
    "58114": "TransferAmountTooSmall",
    "58115": "SubAccountDoesNotExist",
    "58116": "TransferAmountExceedsLimit",
    "58117": "NegativeAssetsTransferRestricted",
    "58119": "MasterAccountNotAllowed",
    "58120": "TransferServiceUnavailable",
    "58121": "TransferDisabledByRiskControl",
    "58123": "FromAccountEqualsToAccount",
    "58124": "TransferInProgress",
    "58125": "NonTradableAssetsTransferOnly",
    "58126": "NonTradableAssetsToFundingOnly",
    "58127": "MainAccountOnly",
    "58128": "TransferLimitExceeded",
    "58129": "AssetsOutOfLimit",
    "58131": "ComplianceRestriction",
    "58132": "ComplianceRestrictionTransfer",
    "58200": "WithdrawalSuspended",
    "58201": "WithdrawalLimitExceeded",
    "58202": "NewAddressWithdrawalLimit",
    "58203": "WithdrawalAddressNotInList",
    "58204": "WithdrawalSuspendedRiskControl",
    "58205": "WithdrawalAmountExceedsMax",
    "58206": "WithdrawalAmountBelowMin",
    "58207": "WithdrawalAddressNotWhitelisted",
    "58208": "WithdrawalEmailNotVerified",
    "58209": "SubAccountWithdrawalRestricted",
    "58210": "WithdrawalFeeTooLow",
    "58211": "WithdrawalFeeTooHigh",
    "58212": "WithdrawalFeeMismatch",
    "58213": "TradingPasswordRequired",
    "58214": "WithdrawalSuspendedChainMaintenance",
    "58215": "WithdrawalIdNotFound",
    "58216": "OperationNotAllowed",
    "58217": "WithdrawalSuspendedAbnormalAddress",
    "58218": "InternalWithdrawalFailed",
    "58219": "WithdrawalRestrictedAfterSecurityChange",
    "58220": "WithdrawalCancelled",
    "58221": "MissingMemo",
    "58222": "InvalidWithdrawalAddress",
    "58224": "OnChainWithdrawalNotSupported",
    "58225": "AssetTransferRestricted",
    "58226": "DelistedCurrencyWithdrawal",
    "58227": "WithdrawalLocked",
    "58228": "UsdtRequiresNewAddress",
    "58229": "InsufficientFundingForFee",
    "58230": "KycRequired",
    "58231": "RecipientKycRequired",
    "58232": "AmountExceedsKycLimit",
    "58233": "WithdrawalRestrictedByLocalRules",
    "58234": "RecipientNotFound",
    "58235": "RecipientUnverified",
    "58236": "RecipientRestricted",
    "58237": "WithdrawalRequiresRecipientInfo",
    "58238": "IncompleteWithdrawalInfo",
    "58240": "AddressNotAllowedForRegion",
    "58241": "AddressBookLimitReached",
    "58242": "ExchangeDoesNotExist",
    "58243": "DuplicateWithdrawalRecipient",
    "58244": "WithdrawalAmountPrecisionError",
    "58248": "WithdrawalRestrictedDueToRisk",
    "58249": "WithdrawalFromSubAccountDisallowed",
    "58300": "DepositAddressLimitExceeded",
    "58301": "DepositAddressNotFound",
    "58302": "DepositAddressRequiresMemo",
    "58303": "DepositSuspendedForCurrency",
    "58304": "InvoiceCreationFailed",
    "58350": "InsufficientBalance",
    "58351": "InvoiceExpired",
    "58352": "InvalidInvoice",
    "58353": "DepositAmountOutOfRange",
    "58354": "InvoiceLimitReached",
    "58355": "PermissionDenied",
    "58356": "AccountsMismatch",
    "58357": "CurrencyNotAllowedInvoice",
    "58358": "FromCurrencyEqualsToCurrency",
    "58370": "DailyUsageLimitExceeded",
    "58371": "SmallAssetsExceedMax",
    "58372": "InsufficientSmallAssets",
}

OKX_ACCOUNT_CODES = frozenset({
    "50100", "58004", "58100", "58119", "58131", "58209", "58219", "58230",
})


def okx_error_class(code: str) -> Tuple[Type[VenueError], str | None]:
    cls = AccountStatusError if code in OKX_ACCOUNT_CODES else VenueError
    return cls, OKX_ERROR_NAMES.get(code)


def unwrap_okx(resp: TransportResponse, endpoint: str) -> Any:
    """``{code, msg, data}``; success iff code == "0"."""
    data = _decode(resp, endpoint)
    if not isinstance(data, dict) or "code" not in data:
        if not resp.ok:
            raise RequestFailedError(endpoint, resp.status, resp.body)
        raise DeserializationError("Missing code envelope", endpoint, resp.status, resp.body)
    code = str(data["code"])
    if code != "0":
        message = data.get("msg") or ""
        # Batch endpoints report the real failure on the first data item
        items = data.get("data")
        if isinstance(items, list) and items and isinstance(items[0], dict) and items[0].get("sCode"):
            code = str(items[0]["sCode"])
            message = items[0].get("sMsg") or message
        cls, name = okx_error_class(code)
        raise _venue_error(code, message, resp, endpoint, cls=cls, name=name)
    return data.get("data")


# --- Gate.io ---

def unwrap_gateio(resp: TransportResponse, endpoint: str) -> Any:
    """No envelope on success; errors are ``{label, message}`` with non-2xx."""
    data = _decode(resp, endpoint)
    if not resp.ok and isinstance(data, dict) and "label" in data:
        raise _venue_error(data["label"], data.get("message") or data.get("detail"), resp, endpoint)
    if not resp.ok:
        raise RequestFailedError(endpoint, resp.status, resp.body)
    return data
