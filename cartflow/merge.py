"""
Identity-transition merge — carry the anonymous basket into an account.

    merger = IdentityMerger(local_backend, server_store, notifier)
    match await merger.merge(identity):
        case Ok(report) if report.skipped: ...
        case Ok(report): print(report.carried_over)
        case Error(e): print(e.kind, e.message)

Runs once per sign-in. Safe to call twice: the second call either finds
the local basket already empty, sees the first call still in flight, or
skips the rows a previous call saved before its local clear failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto

from kungfu import Result, Ok, Error

from cartflow._types import Clock, utcnow
from cartflow.basket._ops import merge_items
from cartflow.persist._sqlalchemy import ServerBasketStore
from cartflow.persist._types import BasketBackend, PersistError
from cartflow.services import Notifier
from cartflow.tier import Identity, policy_for

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Report & Errors
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MergeReport:
    """What a merge did. `skipped` means another merge was already running."""

    added: int = 0
    incremented: int = 0
    dropped: int = 0
    skipped: bool = False

    @property
    def carried_over(self) -> int:
        return self.added + self.incremented


class MergeErrorKind(Enum):
    """Which step of the merge failed."""

    LOCAL_READ = auto()
    SERVER_READ = auto()
    SERVER_WRITE = auto()  # local basket left intact
    LOCAL_CLEAR = auto()  # server already holds the merged basket


@dataclass(frozen=True, slots=True)
class MergeError:
    kind: MergeErrorKind
    message: str
    cause: PersistError | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Merger
# ═══════════════════════════════════════════════════════════════════════════════


class IdentityMerger:
    """
    Folds the device-local basket into the account's server basket.

    Note: the in-flight flag is a plain boolean. Everything runs on one
    event loop, so check-and-set cannot interleave.
    """

    def __init__(
        self,
        local: BasketBackend,
        server: ServerBasketStore,
        notifier: Notifier,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._local = local
        self._server = server
        self._notifier = notifier
        self._clock = clock
        self._in_flight = False
        # account id -> guest row ids already saved to that account
        self._carried: dict[str, frozenset[str]] = {}

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def merge(self, identity: Identity) -> Result[MergeReport, MergeError]:
        if self._in_flight:
            logger.info("merge for %s already in flight, skipping", identity.account_id)
            return Ok(MergeReport(skipped=True))

        self._in_flight = True
        try:
            return await self._merge(identity)
        finally:
            self._in_flight = False

    async def _merge(self, identity: Identity) -> Result[MergeReport, MergeError]:
        match await self._local.load():
            case Error(e):
                return self._failed(MergeErrorKind.LOCAL_READ, e)
            case Ok(local):
                pass

        if local.is_empty:
            return Ok(MergeReport())

        account = identity.account_id
        carried = self._carried.get(account, frozenset())
        pending = [row for row in local.items if row.id not in carried]
        if not pending:
            logger.info("guest rows already saved to %s, retrying local clear", account)
            return await self._clear_local(account, MergeReport())

        server = self._server.for_account(account)
        match await server.load():
            case Error(e):
                return self._failed(MergeErrorKind.SERVER_READ, e)
            case Ok(remote):
                pass

        folded = merge_items(remote, pending, policy_for(identity), now=self._clock())

        match await server.save(folded.basket):
            case Error(e):
                return self._failed(MergeErrorKind.SERVER_WRITE, e)
            case Ok(_):
                self._carried[account] = carried | {row.id for row in pending}

        report = MergeReport(
            added=folded.added,
            incremented=folded.incremented,
            dropped=folded.dropped,
        )
        logger.info(
            "merged guest basket into %s: added=%d incremented=%d dropped=%d present=%d",
            account,
            report.added,
            report.incremented,
            report.dropped,
            folded.already_present,
        )
        if report.carried_over:
            self._notifier.success(_carried_message(report))
        return await self._clear_local(account, report)

    async def _clear_local(
        self, account: str, report: MergeReport
    ) -> Result[MergeReport, MergeError]:
        match await self._local.clear():
            case Error(e):
                return self._failed(MergeErrorKind.LOCAL_CLEAR, e)
            case Ok(_):
                self._carried.pop(account, None)
                return Ok(report)

    def _failed(self, kind: MergeErrorKind, cause: PersistError) -> Result[MergeReport, MergeError]:
        logger.warning("basket merge failed at %s: %s", kind.name, cause.message)
        self._notifier.error("Failed to merge your guest quote basket")
        return Error(MergeError(kind, cause.message, cause))


def _carried_message(report: MergeReport) -> str:
    noun = "item" if report.carried_over == 1 else "items"
    message = f"{report.carried_over} {noun} from your guest basket added to your quote basket"
    if report.dropped:
        message += f" ({report.dropped} over your basket limit not carried over)"
    return message


__all__ = (
    "MergeReport",
    "MergeErrorKind",
    "MergeError",
    "IdentityMerger",
)
