"""Bounded polling of withdrawal and deposit history until settlement.

The same loop confirms outbound withdrawals and inbound deposits; venues
only differ in how history is fetched, how an entry is matched to the
operation id and how its raw status is classified.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from core.clock import Clock
from core.errors import (
    GatewayConfigError, GatewayConnectionError, RequestFailedError,
    SettlementFailed, SettlementTimeout,
)
from core.types import SettlementOutcome, SettlementState, Verdict

log = logging.getLogger(__name__)

FetchHistory = Callable[[], Awaitable[List[dict]]]
Classify = Callable[[dict], Verdict]
MatchBy = Callable[[dict], Any]
StatusCallback = Callable[[str], Any]


class StatusTable:
    """Total mapping from a venue's raw status values to settlement states."""

    def __init__(self, pending: Iterable, success: Iterable, failure: Iterable):
        self.pending = frozenset(str(s) for s in pending)
        self.success = frozenset(str(s) for s in success)
        self.failure = frozenset(str(s) for s in failure)
        overlap = (self.pending & self.success) | (self.pending & self.failure) | (self.success & self.failure)
        if overlap:
            raise GatewayConfigError(f"Status mapped to more than one state: {sorted(overlap)}")

    def state_of(self, raw_status: Any) -> SettlementState:
        key = str(raw_status)
        if key in self.success:
            return SettlementState.SUCCESS
        if key in self.failure:
            return SettlementState.FAILURE
        if key in self.pending:
            return SettlementState.PENDING
        raise GatewayConfigError(f"Unmapped settlement status: {raw_status!r}")

    def verdict(self, raw_status: Any, tx_hash: Optional[str] = None) -> Verdict:
        state = self.state_of(raw_status)
        if state == SettlementState.SUCCESS:
            return Verdict.success(tx_hash)
        if state == SettlementState.FAILURE:
            return Verdict.failure(str(raw_status))
        return Verdict.pending()


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, GatewayConnectionError):
        return True
    return isinstance(exc, RequestFailedError) and exc.is_transient


class SettlementPoller:
    """Polls history until the matching entry reaches a terminal state.

    Network hiccups while polling are retried a few times with backoff
    without spending the attempt budget; venue rejections are not.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        transient_retries: int = 3,
        transient_backoff_s: float = 2.0,
        on_status: Optional[StatusCallback] = None,
    ):
        self.clock = clock or Clock()
        self.transient_retries = transient_retries
        self.transient_backoff_s = transient_backoff_s
        self.on_status = on_status

    async def wait(
        self,
        settlement_id: str,
        fetch_history: FetchHistory,
        classify: Classify,
        match_by: MatchBy,
        max_attempts: int = 500,
        interval_s: float = 10.0,
        deadline_s: Optional[float] = None,
        status_of: Optional[Callable[[dict], Any]] = None,
        label: str = "Settlement",
    ) -> SettlementOutcome:
        if max_attempts < 1:
            raise GatewayConfigError(f"max_attempts must be at least 1, got {max_attempts}")
        progress = {"polls": 0}
        loop = self._poll(settlement_id, fetch_history, classify, match_by,
                          max_attempts, interval_s, status_of, label, progress)
        if deadline_s is None:
            return await loop
        try:
            return await asyncio.wait_for(loop, deadline_s)
        except asyncio.TimeoutError:
            log.warning("%s %s: deadline of %.1fs reached after %d polls",
                        label, settlement_id, deadline_s, progress["polls"])
            raise SettlementTimeout(str(settlement_id), progress["polls"]) from None

    async def _poll(self, settlement_id, fetch_history, classify, match_by,
                    max_attempts, interval_s, status_of, label, progress) -> SettlementOutcome:
        target = str(settlement_id)
        last_status = None
        for attempt in range(1, max_attempts + 1):
            history = await self._fetch(fetch_history, label, target)
            progress["polls"] = attempt
            entry = next((e for e in history if str(match_by(e)) == target), None)
            if entry is not None:
                verdict = classify(entry)
                raw_status = status_of(entry) if status_of else verdict.state.value
                if raw_status != last_status:
                    last_status = raw_status
                    self._emit(f"{label} {target} status: {raw_status}")
                if verdict.state == SettlementState.SUCCESS:
                    log.info("%s %s settled after %d polls (tx=%s)",
                             label, target, attempt, verdict.tx_hash)
                    return SettlementOutcome(target, verdict.tx_hash, attempt, entry)
                if verdict.state == SettlementState.FAILURE:
                    raise SettlementFailed(target, verdict.reason or str(raw_status))
            else:
                log.debug("%s %s not in history yet (poll %d/%d)", label, target, attempt, max_attempts)
            if attempt < max_attempts:
                await self.clock.sleep(interval_s)
        raise SettlementTimeout(target, max_attempts)

    async def _fetch(self, fetch_history: FetchHistory, label: str, target: str) -> List[dict]:
        retries = 0
        while True:
            try:
                return list(await fetch_history() or [])
            except (GatewayConnectionError, RequestFailedError) as e:
                if not _is_transient(e) or retries >= self.transient_retries:
                    raise
                delay = self.transient_backoff_s * (2 ** retries)
                retries += 1
                self._emit(f"{label} {target}: network error while polling, "
                           f"retry {retries}/{self.transient_retries} in {delay:.1f}s")
                log.warning("%s %s poll failed: %s", label, target, e)
                await self.clock.sleep(delay)

    def _emit(self, message: str) -> None:
        log.info("%s", message)
        if self.on_status is None:
            return
        try:
            self.on_status(message)
        except Exception as e:
            log.warning("Status callback error: %s", e)
