"""Order status machine and polling.

The provider owns the status; this module only observes it. Every successful
poll overwrites the local status, even when the move is not one the table
below expects.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from blockhaven.exchange.errors import OrderNotFound, StatusPollTransientFailure
from blockhaven.exchange.models import OrderStatus, StatusUpdate, utcnow
from blockhaven.providers.base import ExchangeProvider, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_FAILURE_ESCALATION = 3
STATUS_UNAVAILABLE_NOTICE = "Status temporarily unavailable. We'll keep checking."

S = OrderStatus

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    S.NEW: frozenset({S.WAITING, S.CONFIRMING, S.REFUNDED, S.EXPIRED, S.VERIFYING}),
    S.WAITING: frozenset({S.CONFIRMING, S.REFUNDED, S.EXPIRED, S.VERIFYING}),
    S.CONFIRMING: frozenset({S.EXCHANGING, S.REFUNDED, S.VERIFYING}),
    S.EXCHANGING: frozenset({S.SENDING, S.REFUNDED, S.VERIFYING}),
    S.SENDING: frozenset({S.FINISHED, S.FAILED, S.REFUNDED, S.VERIFYING}),
    S.VERIFYING: frozenset({S.CONFIRMING, S.EXCHANGING, S.FINISHED, S.FAILED, S.REFUNDED}),
    S.FINISHED: frozenset(),
    S.FAILED: frozenset(),
    S.REFUNDED: frozenset(),
    S.EXPIRED: frozenset(),
}


def is_expected_transition(previous: Optional[OrderStatus], current: OrderStatus) -> bool:
    """Check a status change against the known provider state machine."""
    if previous is None or previous == current:
        return True
    return current in ALLOWED_TRANSITIONS[previous]


@dataclass(frozen=True)
class StatusPresentation:
    label: str
    description: str
    tone: str


STATUS_PRESENTATION: dict[OrderStatus, StatusPresentation] = {
    S.NEW: StatusPresentation("Waiting for deposit", "Send your funds to the deposit address", "pending"),
    S.WAITING: StatusPresentation("Waiting for deposit", "Send your funds to the deposit address", "pending"),
    S.CONFIRMING: StatusPresentation("Confirming", "Transaction is being confirmed on the blockchain", "progress"),
    S.EXCHANGING: StatusPresentation("Exchanging", "Converting your funds", "progress"),
    S.SENDING: StatusPresentation("Sending", "Sending funds to your address", "progress"),
    S.FINISHED: StatusPresentation("Completed", "Order completed successfully", "success"),
    S.FAILED: StatusPresentation("Failed", "Order failed or was refunded", "error"),
    S.REFUNDED: StatusPresentation("Refunded", "Order failed or was refunded", "error"),
    S.VERIFYING: StatusPresentation("Verifying", "The provider is reviewing this order", "progress"),
    S.EXPIRED: StatusPresentation("Expired", "No deposit arrived before the order expired", "error"),
}


def present(status: OrderStatus) -> StatusPresentation:
    return STATUS_PRESENTATION[status]


UpdateCallback = Callable[[StatusUpdate], Union[None, Awaitable[None]]]
NoticeCallback = Callable[[str], Union[None, Awaitable[None]]]


async def _invoke(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class OrderTracker:
    """Polls order status and owns the live subscriptions."""

    def __init__(
        self,
        provider: ExchangeProvider,
        interval: float = DEFAULT_POLL_INTERVAL,
        failure_escalation: int = DEFAULT_FAILURE_ESCALATION,
    ):
        self.provider = provider
        self.interval = interval
        self.failure_escalation = failure_escalation
        self._subscriptions: dict[str, "StatusSubscription"] = {}

    async def poll_status(self, order_id: str) -> StatusUpdate:
        """Fetch the current status once.

        Raises:
            OrderNotFound: the provider does not know the order
            StatusPollTransientFailure: the poll failed for any other reason
        """
        try:
            state = await self.provider.get_exchange_status(order_id)
        except ProviderError as e:
            if e.status_code == 404:
                raise OrderNotFound(order_id)
            if not e.transient:
                logger.error(f"Status poll for {order_id} rejected: {e.message}")
            raise StatusPollTransientFailure(order_id, e.message)
        except Exception as e:
            logger.error(f"Unreadable status for {order_id}: {e!r}")
            raise StatusPollTransientFailure(order_id, "unreadable status response")

        return StatusUpdate(
            order_id=order_id,
            status=state.status,
            observed_at=utcnow(),
            amount_from=state.amount_from,
            amount_to=state.amount_to,
            payin_hash=state.payin_hash,
            payout_hash=state.payout_hash,
            updated_at=state.updated_at,
        )

    def subscribe(
        self,
        order_id: str,
        on_update: Optional[UpdateCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
    ) -> "StatusSubscription":
        """Start polling an order until it reaches a terminal status.

        An existing subscription for the same order is cancelled first, and
        subscriptions that already ended are dropped from the registry.
        """
        existing = self._subscriptions.get(order_id)
        if existing is not None:
            existing.cancel()
        self._prune()

        subscription = StatusSubscription(
            tracker=self,
            order_id=order_id,
            on_update=on_update,
            on_notice=on_notice,
            interval=self.interval,
            failure_escalation=self.failure_escalation,
        )
        self._subscriptions[order_id] = subscription
        subscription.start()
        return subscription

    def _prune(self) -> None:
        finished = [oid for oid, s in self._subscriptions.items() if s.is_finished]
        for order_id in finished:
            del self._subscriptions[order_id]

    def _forget(self, subscription: "StatusSubscription") -> None:
        if self._subscriptions.get(subscription.order_id) is subscription:
            del self._subscriptions[subscription.order_id]

    def get_subscription(self, order_id: str) -> Optional["StatusSubscription"]:
        return self._subscriptions.get(order_id)

    def unsubscribe(self, order_id: str) -> bool:
        """Cancel and forget the subscription for an order."""
        subscription = self._subscriptions.pop(order_id, None)
        if subscription is None:
            return False
        subscription.cancel()
        return True

    async def cancel_all(self) -> None:
        """Cancel every subscription and wait for the tasks to end."""
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.cancel()
        for subscription in subscriptions:
            await subscription.wait()
        if subscriptions:
            logger.info(f"Cancelled {len(subscriptions)} status subscriptions")


class StatusSubscription:
    """A cancellable polling task for one order.

    Polls immediately, then every `interval` seconds, and stops by itself at
    a terminal status. A failed poll keeps the last known status.
    """

    def __init__(
        self,
        tracker: OrderTracker,
        order_id: str,
        on_update: Optional[UpdateCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        failure_escalation: int = DEFAULT_FAILURE_ESCALATION,
    ):
        self.tracker = tracker
        self.order_id = order_id
        self.on_update = on_update
        self.on_notice = on_notice
        self.interval = interval
        self.failure_escalation = failure_escalation

        self.last_update: Optional[StatusUpdate] = None
        self.consecutive_failures = 0
        self.notice: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def status(self) -> Optional[OrderStatus]:
        return self.last_update.status if self.last_update else None

    @property
    def is_terminal(self) -> bool:
        return self.status is not None and self.status.is_terminal

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_finished(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"status:{self.order_id}")

    def cancel(self) -> None:
        """Stop polling. Safe to call more than once."""
        self._cancelled = True
        self.tracker._forget(self)
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug(f"Status subscription for {self.order_id} cancelled")

    unsubscribe = cancel

    async def wait(self) -> None:
        """Wait for the polling task to end (terminal status or cancel)."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await self._tick()
            if self.is_terminal:
                logger.info(f"Order {self.order_id} reached {self.status.value}; polling stopped")
                return
            await asyncio.sleep(self.interval)

    async def _tick(self) -> None:
        try:
            update = await self.tracker.poll_status(self.order_id)
        except (StatusPollTransientFailure, OrderNotFound) as e:
            await self._failed(e.message)
            return
        except Exception as e:
            await self._failed(repr(e))
            return

        self.consecutive_failures = 0
        self.notice = None

        previous = self.status
        if not is_expected_transition(previous, update.status):
            logger.warning(
                f"Order {self.order_id} moved {previous.value} -> {update.status.value}, "
                f"outside the known state machine"
            )
        elif previous != update.status:
            logger.info(f"Order {self.order_id} status: {update.status.value}")

        self.last_update = update
        await self._callback(self.on_update, update)

    async def _failed(self, reason: str) -> None:
        self.consecutive_failures += 1
        logger.warning(f"Status poll {self.consecutive_failures} for {self.order_id} failed: {reason}")
        if self.consecutive_failures == self.failure_escalation:
            self.notice = STATUS_UNAVAILABLE_NOTICE
            await self._callback(self.on_notice, STATUS_UNAVAILABLE_NOTICE)

    async def _callback(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        try:
            await _invoke(callback, *args)
        except Exception as e:
            logger.error(f"Status callback for {self.order_id} raised: {e}")
