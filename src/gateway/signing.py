"""Per-venue request signing.

Each strategy turns a prepared ``RequestDescriptor`` into a signed one by
adding the headers and parameters its venue authenticates with. The
timestamp is passed in, so signing the same descriptor twice with the same
timestamp yields the same request.
"""
from __future__ import annotations
import base64
import hashlib
import hmac
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from core.errors import GatewayConfigError
from core.types import Credential, HttpMethod, RequestDescriptor

DEFAULT_RECV_WINDOW = "5000"


def _hmac_sha256(secret: str, payload: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).digest()


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode()


class SigningStrategy(ABC):
    requires_passphrase: bool = False

    @abstractmethod
    def sign(self, request: RequestDescriptor, credential: Credential,
             timestamp_ms: int) -> RequestDescriptor: ...

    def validate(self, credential: Credential) -> None:
        """Fail before any network call when the credential cannot sign."""
        if not credential.api_key or not credential.api_secret:
            raise GatewayConfigError(f"{type(self).__name__}: API key and secret are required")
        if self.requires_passphrase:
            credential.require_passphrase(type(self).__name__)


# --- Binance family ---

class BinanceSigner(SigningStrategy):
    """Query-string HMAC-SHA256, signature appended as a parameter."""

    def __init__(self, recv_window: Optional[int] = None):
        self.recv_window = recv_window

    def sign(self, request: RequestDescriptor, credential: Credential,
             timestamp_ms: int) -> RequestDescriptor:
        request.headers["X-MBX-APIKEY"] = credential.api_key
        request.query.pop("signature", None)
        if self.recv_window is not None and "recvWindow" not in request.query:
            request.query["recvWindow"] = str(self.recv_window)
        request.query.pop("timestamp", None)
        request.query["timestamp"] = str(timestamp_ms)
        query_string = request.query_string
        request.query["signature"] = hmac.new(
            credential.api_secret.encode("utf-8"),
            query_string.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return request


# --- ByBit ---

class BybitSigner(SigningStrategy):
    """timestamp + key + recvWindow + (query | body), HMAC-SHA256 hex."""

    def __init__(self, recv_window: Optional[int] = None):
        self.recv_window = str(recv_window) if recv_window is not None else DEFAULT_RECV_WINDOW

    def sign(self, request: RequestDescriptor, credential: Credential,
             timestamp_ms: int) -> RequestDescriptor:
        timestamp = str(timestamp_ms)
        recv_window = request.headers.setdefault("X-BAPI-RECV-WINDOW", self.recv_window)
        if request.method == HttpMethod.POST:
            payload = request.body or ""
            request.headers["Content-Type"] = "application/json"
        else:
            payload = request.query_string
        param_str = f"{timestamp}{credential.api_key}{recv_window}{payload}"
        request.headers.update({
            "X-BAPI-API-KEY": credential.api_key,
            "X-BAPI-SIGN": hmac.new(
                credential.api_secret.encode("utf-8"),
                param_str.encode("utf-8"),
                hashlib.sha256,
            ).hexdigest(),
            "X-BAPI-SIGN-TYPE": "2",
            "X-BAPI-TIMESTAMP": timestamp,
        })
        return request


# --- KuCoin ---

class KucoinSigner(SigningStrategy):
    """timestamp + METHOD + path(?query) + body, HMAC-SHA256 base64.

    Key version 1 sends the passphrase as is; version 2 sends it signed with
    the secret.
    """

    requires_passphrase = True

    def __init__(self, key_version: int = 2):
        if key_version not in (1, 2):
            raise GatewayConfigError(f"Unsupported KuCoin API key version: {key_version}")
        self.key_version = key_version

    def passphrase_header(self, credential: Credential) -> str:
        passphrase = credential.require_passphrase("KuCoin")
        if self.key_version == 1:
            return passphrase
        return _b64(_hmac_sha256(credential.api_secret, passphrase))

    def sign(self, request: RequestDescriptor, credential: Credential,
             timestamp_ms: int) -> RequestDescriptor:
        passphrase = self.passphrase_header(credential)
        timestamp = str(timestamp_ms)
        endpoint = request.path
        if request.method in (HttpMethod.GET, HttpMethod.DELETE):
            endpoint = request.path_with_query
        prehash = f"{timestamp}{request.method.value}{endpoint}{request.body or ''}"
        request.headers.update({
            "KC-API-KEY": credential.api_key,
            "KC-API-SIGN": _b64(_hmac_sha256(credential.api_secret, prehash)),
            "KC-API-TIMESTAMP": timestamp,
            "KC-API-PASSPHRASE": passphrase,
            "KC-API-KEY-VERSION": str(self.key_version),
        })
        if request.body is not None:
            request.headers["Content-Type"] = "application/json"
        return request


# --- OKX ---

def okx_timestamp(timestamp_ms: int) -> str:
    dt = datetime.fromtimestamp(timestamp_ms // 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{timestamp_ms % 1000:03d}Z"


class OkxSigner(SigningStrategy):
    """ISO timestamp + METHOD + path(?query) + body, HMAC-SHA256 base64."""

    requires_passphrase = True

    def sign(self, request: RequestDescriptor, credential: Credential,
             timestamp_ms: int) -> RequestDescriptor:
        passphrase = credential.require_passphrase("OKX")
        timestamp = okx_timestamp(timestamp_ms)
        prehash = f"{timestamp}{request.method.value}{request.path_with_query}{request.body or ''}"
        request.headers.update({
            "OK-ACCESS-KEY": credential.api_key,
            "OK-ACCESS-SIGN": _b64(_hmac_sha256(credential.api_secret, prehash)),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": passphrase,
        })
        if request.body is not None:
            request.headers["Content-Type"] = "application/json"
        return request


# --- Gate.io ---

class GateIoSigner(SigningStrategy):
    """Newline-joined METHOD, path, query, sha512(body), seconds; HMAC-SHA512 hex."""

    def sign(self, request: RequestDescriptor, credential: Credential,
             timestamp_ms: int) -> RequestDescriptor:
        timestamp = str(timestamp_ms // 1000)
        body_hash = hashlib.sha512((request.body or "").encode("utf-8")).hexdigest()
        prehash = "\n".join([
            request.method.value,
            request.path,
            request.query_string,
            body_hash,
            timestamp,
        ])
        request.headers.update({
            "KEY": credential.api_key,
            "Timestamp": timestamp,
            "SIGN": hmac.new(
                credential.api_secret.encode("utf-8"),
                prehash.encode("utf-8"),
                hashlib.sha512,
            ).hexdigest(),
        })
        if request.body is not None:
            request.headers["Content-Type"] = "application/json"
        return request
