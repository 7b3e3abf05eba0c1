"""Correlate pending operations with events emitted later on the ledger.

A transaction receipt does not carry derived identifiers such as a freshly
assigned election id, so callers register a wait for a named event whose
decoded fields satisfy a predicate.  Each wait polls the contract's logs block
range by block range until a match arrives or its absolute deadline passes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generator, Mapping, Optional

from web3 import Web3

from .errors import EventPollingError, EventTimeoutError, OrchestratorError
from .ledger import LedgerClient
from .models import EventRecord

logger = logging.getLogger(__name__)

Predicate = Callable[[Mapping[str, Any]], bool]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


def match_all(_fields: Mapping[str, Any]) -> bool:
    return True


def fields_equal(**expected: Any) -> Predicate:
    """Build a predicate requiring each named field to equal the given value.

    Expected values that are addresses are compared case-insensitively and
    integers by value; every other value must match exactly.
    """

    def predicate(fields: Mapping[str, Any]) -> bool:
        for key, want in expected.items():
            if key not in fields:
                return False
            have = fields[key]
            if isinstance(want, str) and isinstance(have, str) and Web3.is_address(want):
                if have.lower() != want.lower():
                    return False
            elif isinstance(want, int) and not isinstance(want, bool):
                if int(have) != want:
                    return False
            elif have != want:
                return False
        return True

    return predicate


@dataclass
class EventWaitToken:
    """Correlation state owned by exactly one pending wait."""

    event_name: str
    predicate: Predicate
    last_observed_block: int
    deadline: float
    resolved: bool = False


class EventWait:
    """Awaitable handle on one registered wait.

    Awaiting it yields the matching :class:`EventRecord` or raises
    :class:`EventTimeoutError`; :meth:`cancel` stops the polling task.
    """

    def __init__(self, token: EventWaitToken, task: "asyncio.Task[EventRecord]") -> None:
        self.token = token
        self._task = task

    @property
    def event_name(self) -> str:
        return self.token.event_name

    @property
    def deadline(self) -> float:
        return self.token.deadline

    def cancel(self) -> None:
        """Stop polling; an outcome the wait already reached is discarded."""

        if not self._task.done():
            logger.debug("Cancelling wait for %s", self.token.event_name)
            self._task.cancel()
        elif not self._task.cancelled() and self._task.exception() is not None:
            logger.debug("Discarding failed wait for %s: %s", self.token.event_name, self._task.exception())

    def done(self) -> bool:
        return self._task.done()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    def __await__(self) -> Generator[Any, None, EventRecord]:
        return self._task.__await__()


class EventCorrelator:
    """Poll a contract's log stream on behalf of registered waits."""

    def __init__(
        self,
        ledger: LedgerClient,
        *,
        poll_interval: float = 1.0,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if poll_interval < 0:
            raise ValueError("poll_interval must be non-negative")
        self._ledger = ledger
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def deadline_in(self, seconds: float) -> float:
        """Return the absolute deadline ``seconds`` from now on this correlator's clock."""

        return self._clock() + seconds

    async def register(
        self,
        event_name: str,
        predicate: Optional[Predicate] = None,
        *,
        deadline: Optional[float] = None,
        timeout: Optional[float] = None,
        after_block: Optional[int] = None,
    ) -> EventWait:
        """Start watching for ``event_name`` in blocks mined after ``after_block``.

        Without ``after_block`` the watermark is the chain head at registration.
        Passing the block of the transaction that triggers the event keeps an
        event mined between that receipt and this call in range.
        """

        if deadline is None:
            if timeout is None:
                raise ValueError("Either deadline or timeout is required")
            deadline = self.deadline_in(timeout)
        if after_block is not None:
            start_block = after_block
        else:
            try:
                start_block = await self._ledger.block_number()
            except OrchestratorError:
                raise
            except Exception as exc:
                raise EventPollingError(f"Could not read chain head: {exc}", event_name=event_name) from exc
        token = EventWaitToken(
            event_name=event_name,
            predicate=predicate or match_all,
            last_observed_block=start_block,
            deadline=deadline,
        )
        logger.debug("Registered wait for %s from block %d", event_name, start_block)
        task = asyncio.get_running_loop().create_task(self._run(token), name=f"wait:{event_name}")
        return EventWait(token, task)

    async def wait_for_event(
        self,
        event_name: str,
        predicate: Optional[Predicate] = None,
        *,
        deadline: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> EventRecord:
        wait = await self.register(event_name, predicate, deadline=deadline, timeout=timeout)
        return await wait

    async def poll_once(self, token: EventWaitToken) -> Optional[EventRecord]:
        """Scan blocks after the token's watermark up to the head.

        The watermark advances to the scanned head whether or not a match was
        found.  A resolved token never yields a second match.
        """

        if token.resolved:
            return None
        try:
            head = await self._ledger.block_number()
            if head <= token.last_observed_block:
                return None
            logs = await self._ledger.get_logs(token.last_observed_block + 1, head)
            records = [record for record in (self._ledger.decode_log(log) for log in logs) if record is not None]
            records.sort(key=lambda record: (record.block_number, record.log_index))
            match = next(
                (
                    record
                    for record in records
                    if record.name == token.event_name and token.predicate(record.fields)
                ),
                None,
            )
        except OrchestratorError:
            raise
        except Exception as exc:
            logger.error("Error polling events for %s: %s", token.event_name, exc)
            raise EventPollingError(
                f"Polling for {token.event_name} failed: {exc}", event_name=token.event_name
            ) from exc

        logger.debug(
            "Scanned blocks %d-%d for %s",
            token.last_observed_block + 1,
            head,
            token.event_name,
        )
        token.last_observed_block = head
        if match is None:
            return None
        token.resolved = True
        logger.info(
            "Event triggered: %s",
            match.name,
            extra={"event_fields": {k: str(v) for k, v in match.fields.items()}},
        )
        return match

    async def _run(self, token: EventWaitToken) -> EventRecord:
        while True:
            match = await self.poll_once(token)
            if match is not None:
                return match
            remaining = token.deadline - self._clock()
            if remaining <= 0:
                logger.warning("Timed out waiting for %s event", token.event_name)
                raise EventTimeoutError(
                    f"Timed out waiting for {token.event_name} event",
                    event_name=token.event_name,
                    deadline=token.deadline,
                )
            await self._sleep(min(self._poll_interval, remaining))


__all__ = [
    "EventCorrelator",
    "EventWait",
    "EventWaitToken",
    "Predicate",
    "fields_equal",
    "match_all",
]
