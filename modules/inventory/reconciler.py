"""
Inventory Module - Stock Reconciliation
=========================================
Checks every cart line against live stock before checkout may continue.

Stock is kept per (shoe, size), so colour variants of one size share a count.
Lines are grouped by that key, one lookup runs per group, and all lookups of a
pass are fanned out together and joined with asyncio.gather. A
ReconciliationResult only exists once every lookup has finished. A lookup
that fails or times out makes its lines UNRESOLVED, which blocks checkout the
same way a stock shortage does.

CheckoutGate keeps track of the newest pass per cart: starting a pass cancels
the one in flight, and a result computed for an older cart revision is
discarded. Gates live only while someone is checking; the registry is also
capped at CHECKOUT_GATE_MAX_ENTRIES.
"""

import asyncio
import enum
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from config.settings import CHECKOUT_GATE_MAX_ENTRIES, STOCK_LOOKUP_TIMEOUT_SECONDS
from modules.inventory.service import InventoryLookup

logger = logging.getLogger("kickvault.inventory.reconcile")


class StockStatus(str, enum.Enum):
    OK = "ok"
    INSUFFICIENT = "insufficient"
    SOLD_OUT = "sold_out"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class StockIssue:
    type: StockStatus
    available: Optional[int]
    requested: int
    name: str = ""
    error: Optional[str] = None
    # Total asked for this (shoe, size) across all lines, when several lines share it
    combined_requested: Optional[int] = None

    @property
    def message(self) -> str:
        if self.type == StockStatus.SOLD_OUT:
            return "Item is currently out of stock."
        if self.type == StockStatus.INSUFFICIENT:
            if self.combined_requested is not None:
                return f"Only {self.available} left in this size across your cart."
            return f"Only {self.available} left in stock."
        return "Could not check stock for this item. Please try again."

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "available": self.available,
            "requested": self.requested,
            "combined_requested": self.combined_requested,
            "name": self.name,
            "message": self.message,
        }


@dataclass(frozen=True)
class ReconciliationResult:
    issues: Dict[str, StockIssue] = field(default_factory=dict)
    lines_checked: int = 0
    revision: Optional[int] = None
    complete: bool = True

    @property
    def can_proceed(self) -> bool:
        return self.complete and not self.issues

    @property
    def has_unresolved(self) -> bool:
        return any(i.type == StockStatus.UNRESOLVED for i in self.issues.values())

    def to_dict(self) -> dict:
        return {
            "can_proceed": self.can_proceed,
            "complete": self.complete,
            "lines_checked": self.lines_checked,
            "revision": self.revision,
            "issues": {line_id: issue.to_dict() for line_id, issue in self.issues.items()},
        }


# Result used while a pass is still running
PENDING_RESULT = ReconciliationResult(complete=False)


def classify_stock(requested: int, available: int, name: str = "") -> Optional[StockIssue]:
    """
    available == 0            → SOLD_OUT
    0 < available < requested → INSUFFICIENT
    available >= requested    → None (no issue)
    """
    if available <= 0:
        return StockIssue(type=StockStatus.SOLD_OUT, available=0, requested=requested, name=name)
    if available < requested:
        return StockIssue(type=StockStatus.INSUFFICIENT, available=available, requested=requested, name=name)
    return None




StockKey = Tuple[int, object]


class StockReconciler:

    def __init__(self, lookup: InventoryLookup, timeout: float = STOCK_LOOKUP_TIMEOUT_SECONDS):
        self.lookup = lookup
        self.timeout = timeout

    async def reconcile(self, lines: Iterable, revision: Optional[int] = None) -> ReconciliationResult:
        """Check all lines concurrently; return only after every lookup has finished."""
        lines = list(lines)
        groups: Dict[StockKey, list] = {}
        for line in lines:
            groups.setdefault((line.product_id, line.size), []).append(line)

        keys = list(groups)
        outcomes = await asyncio.gather(*(self._lookup_stock(product_id, size) for product_id, size in keys))

        issues = {}
        for key, (available, error) in zip(keys, outcomes):
            for line, issue in self._classify_group(groups[key], available, error):
                if issue is not None:
                    issues[line.line_id] = issue

        result = ReconciliationResult(issues=issues, lines_checked=len(lines), revision=revision)
        if issues:
            summary = ", ".join(f"{k}={v.type.value}" for k, v in issues.items())
            logger.info(f"Stock check (rev {revision}): {len(issues)}/{len(lines)} line(s) blocked [{summary}]")
        return result

    async def _lookup_stock(self, product_id: int, size) -> Tuple[Optional[int], Optional[str]]:
        """(available, None) on success, (None, error) when the count can't be trusted."""
        try:
            available = await asyncio.wait_for(self.lookup.lookup(product_id, size), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Stock lookup timed out for shoe {product_id} size {size} after {self.timeout}s")
            return None, "timeout"
        except Exception as e:
            logger.error(f"Stock lookup failed for shoe {product_id} size {size}: {e}")
            return None, str(e)

        if available is None:
            return 0, None
        if isinstance(available, bool) or not isinstance(available, int) or available < 0:
            logger.error(f"Stock lookup for shoe {product_id} size {size} returned invalid value {available!r}")
            return None, "invalid stock value"
        return available, None

    def _classify_group(self, group: list, available: Optional[int], error: Optional[str]):
        """Yield (line, issue or None) for lines sharing one stock count."""
        if error is not None:
            for line in group:
                yield line, StockIssue(
                    type=StockStatus.UNRESOLVED, available=None,
                    requested=line.quantity, name=line.name, error=error,
                )
            return

        combined = sum(line.quantity for line in group)
        if len(group) > 1 and combined > available:
            logger.info(
                f"Shoe {group[0].product_id} size {group[0].size}: {len(group)} lines ask for "
                f"{combined} together, only {available} in stock"
            )

        for line in group:
            issue = classify_stock(line.quantity, available, line.name)
            if issue is None and combined > available:
                issue = StockIssue(
                    type=StockStatus.INSUFFICIENT, available=available, requested=line.quantity,
                    name=line.name, combined_requested=combined,
                )
            elif issue is not None and len(group) > 1:
                issue = StockIssue(
                    type=issue.type, available=issue.available, requested=issue.requested,
                    name=issue.name, combined_requested=combined,
                )
            yield line, issue


class CheckoutGate:
    """
    Tracks the newest reconciliation pass for one cart.

    can_proceed is True only when the latest pass has finished, belongs to the
    current cart revision, and reported no issues.
    """

    def __init__(self, reconciler: StockReconciler):
        self.reconciler = reconciler
        self._task: Optional[asyncio.Task] = None
        self._revision: Optional[int] = None
        self._result: Optional[ReconciliationResult] = None
        self._waiters = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def idle(self) -> bool:
        """No pass running and nobody waiting on one."""
        return not self.in_flight and self._waiters == 0

    @property
    def result(self) -> ReconciliationResult:
        """Latest valid result, or PENDING_RESULT while nothing current is available."""
        if self.in_flight or self._result is None or self._result.revision != self._revision:
            return PENDING_RESULT
        return self._result

    @property
    def can_proceed(self) -> bool:
        return self.result.can_proceed

    def start(self, session) -> asyncio.Task:
        """Abandon any pass in flight and start one for this session's revision."""
        if self.in_flight:
            logger.debug(f"Abandoning stock check for rev {self._revision} (new rev {session.revision})")
            self._task.cancel()
        self._revision = session.revision
        self._result = None
        self._task = asyncio.ensure_future(
            self.reconciler.reconcile(session.lines, revision=session.revision)
        )
        return self._task

    def invalidate(self, revision: int):
        """The cart changed without a new pass; drop whatever is in flight."""
        if revision == self._revision:
            return
        self._revision = revision
        self.abandon()

    def abandon(self):
        """Cancel the pass in flight and forget the result. Waiters get PENDING_RESULT."""
        if self.in_flight:
            self._task.cancel()
        self._result = None
        self._task = None

    async def wait(self) -> ReconciliationResult:
        """Wait for the newest pass; follows along if it gets superseded meanwhile."""
        self._waiters += 1
        try:
            while True:
                task = self._task
                if task is None:
                    return PENDING_RESULT
                try:
                    result = await asyncio.shield(task)
                except asyncio.CancelledError:
                    if task is not self._task and task.cancelled():
                        continue
                    raise
                if task is not self._task:
                    continue
                if result.revision == self._revision:
                    self._result = result
                return self.result
        finally:
            self._waiters -= 1

    async def check(self, session) -> ReconciliationResult:
        self.start(session)
        return await self.wait()


# ==========================================
# Per-user gates (single process)
# ==========================================

# Least recently used first
_gates: "OrderedDict[str, CheckoutGate]" = OrderedDict()


def get_gate(user_id: str, reconciler: StockReconciler) -> CheckoutGate:
    gate = _gates.get(user_id)
    if gate is None:
        gate = CheckoutGate(reconciler)
        _gates[user_id] = gate
        _evict_idle(keep=user_id)
    else:
        gate.reconciler = reconciler
        _gates.move_to_end(user_id)
    return gate


def _evict_idle(keep: str):
    """Drop the least recently used idle gates while over CHECKOUT_GATE_MAX_ENTRIES."""
    while len(_gates) > CHECKOUT_GATE_MAX_ENTRIES:
        oldest = next((uid for uid, gate in _gates.items() if uid != keep and gate.idle), None)
        if oldest is None:
            logger.warning(f"{len(_gates)} checkout gates busy, above limit {CHECKOUT_GATE_MAX_ENTRIES}")
            return
        del _gates[oldest]


def release_gate(user_id: str, gate: CheckoutGate):
    """Forget the gate once its pass is over and no other request is waiting on it."""
    if _gates.get(user_id) is gate and gate.idle:
        del _gates[user_id]


def drop_gate(user_id: str):
    gate = _gates.pop(user_id, None)
    if gate is not None:
        gate.abandon()


def invalidate_gate(user_id: str, revision: int):
    """Called after a cart mutation: a pass for an older revision must not gate checkout."""
    gate = _gates.get(user_id)
    if gate is not None:
        gate.invalidate(revision)
        release_gate(user_id, gate)
