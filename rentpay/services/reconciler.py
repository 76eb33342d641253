"""
Rent payment state machine.

A payment attempt walks

    IDLE -> ORDER_PENDING -> GATEWAY_OPEN -> SUCCESS_SIGNAL | FAILURE_SIGNAL | DISMISSED

and only a success signal goes on to VERIFYING, which ends in CONFIRMED_PAID
or PRESUMED_PROCESSING, then SETTLED and back to IDLE. Failure and dismissal
return straight to IDLE.

Running out of verification attempts is not a failure. The gateway already
reported the charge, so the attempt resolves as "processing" and background
refreshes pick up the backend record once it catches up.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional
from rentpay.core.config import settings
from rentpay.core.errors import (
    GatewayUnavailableError,
    InvalidTransition,
    OrderCreationError,
    RentPaymentError,
)
from rentpay.schemas.rent import DuePayment, PaymentOrder, Prefill, VerificationResult
from rentpay.services.due_refresher import DueRefresher, Sleep
from rentpay.services.gateway import GatewayAdapter, GatewayOutcome, OutcomeKind
from rentpay.services.notifications import LoggingNotifier, Notice, NoticeKind, NoticeLevel, Notifier
from rentpay.services.presentation import NO_DUE_MESSAGE, is_test_payment, period_label, sandbox_notice

logger = logging.getLogger(__name__)

CONFIRMED_MESSAGE = "Payment successful! Invoice will be available shortly."
PROCESSING_MESSAGE = "Payment successful! Your payment is being processed. Please refresh in a moment."
DISMISSED_MESSAGE = "Payment window closed"
INITIATE_FAILED_MESSAGE = "Unable to initiate payment"


class PaymentState(str, Enum):
    IDLE = "IDLE"
    ORDER_PENDING = "ORDER_PENDING"
    GATEWAY_OPEN = "GATEWAY_OPEN"
    SUCCESS_SIGNAL = "SUCCESS_SIGNAL"
    FAILURE_SIGNAL = "FAILURE_SIGNAL"
    DISMISSED = "DISMISSED"
    VERIFYING = "VERIFYING"
    CONFIRMED_PAID = "CONFIRMED_PAID"
    PRESUMED_PROCESSING = "PRESUMED_PROCESSING"
    SETTLED = "SETTLED"


TRANSITIONS: Dict[PaymentState, frozenset] = {
    PaymentState.IDLE: frozenset({PaymentState.ORDER_PENDING}),
    PaymentState.ORDER_PENDING: frozenset({PaymentState.GATEWAY_OPEN, PaymentState.IDLE}),
    PaymentState.GATEWAY_OPEN: frozenset({
        PaymentState.SUCCESS_SIGNAL,
        PaymentState.FAILURE_SIGNAL,
        PaymentState.DISMISSED,
    }),
    PaymentState.SUCCESS_SIGNAL: frozenset({PaymentState.VERIFYING}),
    PaymentState.FAILURE_SIGNAL: frozenset({PaymentState.IDLE}),
    PaymentState.DISMISSED: frozenset({PaymentState.IDLE}),
    PaymentState.VERIFYING: frozenset({PaymentState.CONFIRMED_PAID, PaymentState.PRESUMED_PROCESSING}),
    PaymentState.CONFIRMED_PAID: frozenset({PaymentState.SETTLED}),
    PaymentState.PRESUMED_PROCESSING: frozenset({PaymentState.SETTLED}),
    PaymentState.SETTLED: frozenset({PaymentState.IDLE}),
}


class Resolution(str, Enum):
    CONFIRMED_PAID = "confirmed_paid"
    PRESUMED_PROCESSING = "presumed_processing"
    FAILED = "failed"
    DISMISSED = "dismissed"
    ABORTED = "aborted"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class VerificationPolicy:
    max_retries: int = 3
    settle_delay: float = 2.0
    retry_delay: float = 2.0
    processing_refresh_delay: float = 5.0
    catchup_refresh_delay: float = 15.0

    @classmethod
    def from_settings(cls) -> "VerificationPolicy":
        return cls(
            max_retries=settings.VERIFY_MAX_RETRIES,
            settle_delay=settings.VERIFY_SETTLE_DELAY,
            retry_delay=settings.VERIFY_RETRY_DELAY,
            processing_refresh_delay=settings.PROCESSING_REFRESH_DELAY,
            catchup_refresh_delay=settings.CATCHUP_REFRESH_DELAY,
        )


@dataclass
class VerificationAttempt:
    attempt_index: int
    verified: bool = False
    status: Optional[str] = None
    error: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.verified and self.status == "PAID"


@dataclass
class VerificationLoop:
    """Bounded, strictly sequential verification of one payment id."""

    payment_id: str
    policy: VerificationPolicy = field(default_factory=VerificationPolicy)
    attempt_index: int = 0
    attempts: List[VerificationAttempt] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.attempt_index >= self.policy.max_retries

    @property
    def confirmed(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].confirmed

    async def run(self, verify: Callable[[str], Awaitable[VerificationResult]], sleep: Sleep) -> bool:
        # Head start for the gateway webhook before the first query
        await sleep(self.policy.settle_delay)
        while not self.exhausted:
            attempt = await self.attempt(verify)
            if attempt.confirmed:
                return True
            if not self.exhausted:
                logger.info(f"Payment {self.payment_id} not yet verified, retrying in {self.policy.retry_delay}s")
                await sleep(self.policy.retry_delay)
        return False

    async def attempt(self, verify: Callable[[str], Awaitable[VerificationResult]]) -> VerificationAttempt:
        attempt = VerificationAttempt(attempt_index=self.attempt_index)
        try:
            result = await verify(self.payment_id)
            attempt.verified = result.verified
            attempt.status = result.status
            logger.info(
                f"Verify attempt {self.attempt_index + 1} for {self.payment_id}: "
                f"verified={result.verified} status={result.status}"
            )
        except Exception as e:
            # Transport errors only mean "not confirmed yet"
            attempt.error = str(e)
            logger.warning(f"Verification error for {self.payment_id} (attempt {self.attempt_index + 1}): {e}")
        self.attempts.append(attempt)
        self.attempt_index += 1
        return attempt


class Reconciler:
    """Runs verification loops, at most one at a time per payment id."""

    def __init__(
        self,
        verify: Callable[[str], Awaitable[VerificationResult]],
        policy: Optional[VerificationPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.verify_call = verify
        self.policy = policy or VerificationPolicy.from_settings()
        self.sleep = sleep
        self._active: Dict[str, asyncio.Task] = {}

    def is_active(self, payment_id: str) -> bool:
        return payment_id in self._active

    async def verify(self, payment_id: str) -> VerificationLoop:
        task = self._active.get(payment_id)
        if task is None:
            task = asyncio.ensure_future(self._run(VerificationLoop(payment_id, self.policy)))
            self._active[payment_id] = task
        else:
            logger.info(f"Verification for {payment_id} already running; joining it")
        # The charge has happened, so a cancelled caller must not stop reconciliation
        return await asyncio.shield(task)

    async def _run(self, loop: VerificationLoop) -> VerificationLoop:
        try:
            await loop.run(self.verify_call, self.sleep)
            return loop
        finally:
            self._active.pop(loop.payment_id, None)


@dataclass
class PaymentResult:
    resolution: Resolution
    message: Optional[str] = None
    outcome: Optional[GatewayOutcome] = None
    verification: Optional[VerificationLoop] = None

    @property
    def verify_calls(self) -> int:
        return len(self.verification.attempts) if self.verification else 0


class RentPaymentFlow:
    """
    Drives one rent payment at a time from "Pay Now" to a settled due.

    ``api`` needs ``get_next_due``, ``create_order`` and ``verify_payment``
    coroutines (see RentPaymentAPI).
    """

    def __init__(
        self,
        api,
        gateway: Optional[GatewayAdapter] = None,
        notifier: Optional[Notifier] = None,
        refresher: Optional[DueRefresher] = None,
        policy: Optional[VerificationPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api = api
        self.gateway = gateway or GatewayAdapter()
        self.notifier = notifier or LoggingNotifier()
        self.refresher = refresher or DueRefresher(api.get_next_due, self.notifier, sleep)
        self.policy = policy or VerificationPolicy.from_settings()
        self.reconciler = Reconciler(api.verify_payment, self.policy, sleep)
        self.state = PaymentState.IDLE
        self.history: List[PaymentState] = [PaymentState.IDLE]
        self._settling: Optional[asyncio.Task] = None

    @property
    def paying(self) -> bool:
        return self.state is not PaymentState.IDLE

    def _transition(self, target: PaymentState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransition(self.state, target)
        logger.debug(f"Payment state {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    def _notify(self, kind: NoticeKind, level: NoticeLevel, message: str) -> None:
        self.notifier.notify(Notice(kind, level, message))

    def _abort(self, kind: NoticeKind, message: str) -> PaymentResult:
        self._notify(kind, NoticeLevel.ERROR, message)
        self._transition(PaymentState.IDLE)
        return PaymentResult(Resolution.ABORTED, message)

    async def pay(self, due: Optional[DuePayment] = None, prefill: Optional[Prefill] = None) -> PaymentResult:
        due = due if due is not None else self.refresher.current
        if due is None or not due.has_due:
            return PaymentResult(Resolution.SKIPPED, NO_DUE_MESSAGE)
        if self.paying:
            logger.info(f"Payment already in flight ({self.state.value}); ignoring pay request")
            return PaymentResult(Resolution.SKIPPED, "Payment already in progress")

        self._transition(PaymentState.ORDER_PENDING)
        try:
            order = await self.api.create_order(due.payment_id)
            self._advise_test_mode(order, due)
            outcome = await self.gateway.open(
                order,
                prefill or Prefill(),
                description=f"Rent payment for {period_label(due.period_month, due.period_year)}",
                on_open=lambda: self._transition(PaymentState.GATEWAY_OPEN),
            )
        except OrderCreationError as e:
            logger.error(f"Order creation failed for {due.payment_id}: {e.message}")
            return self._abort(NoticeKind.ORDER_FAILED, e.message)
        except GatewayUnavailableError as e:
            logger.error(f"Gateway unavailable for {due.payment_id}: {e.message}")
            return self._abort(NoticeKind.GATEWAY_UNAVAILABLE, e.message)
        except asyncio.CancelledError:
            # Tearing down an open checkout counts as the user closing it
            if self.state is PaymentState.GATEWAY_OPEN:
                self._transition(PaymentState.DISMISSED)
            if self.state is not PaymentState.IDLE:
                self._transition(PaymentState.IDLE)
            raise
        except Exception as e:
            if self.state is not PaymentState.ORDER_PENDING:
                raise
            logger.exception(f"Unexpected error starting payment {due.payment_id}")
            message = e.message if isinstance(e, RentPaymentError) else (str(e) or INITIATE_FAILED_MESSAGE)
            return self._abort(NoticeKind.ORDER_FAILED, message)

        if outcome.kind is OutcomeKind.FAILURE:
            self._transition(PaymentState.FAILURE_SIGNAL)
            self._notify(NoticeKind.PAYMENT_FAILED, NoticeLevel.ERROR, outcome.reason)
            self._transition(PaymentState.IDLE)
            return PaymentResult(Resolution.FAILED, outcome.reason, outcome=outcome)

        if outcome.kind is OutcomeKind.DISMISSED:
            self._transition(PaymentState.DISMISSED)
            self._notify(NoticeKind.PAYMENT_DISMISSED, NoticeLevel.INFO, DISMISSED_MESSAGE)
            self._transition(PaymentState.IDLE)
            return PaymentResult(Resolution.DISMISSED, DISMISSED_MESSAGE, outcome=outcome)

        self._transition(PaymentState.SUCCESS_SIGNAL)
        logger.info(f"Gateway reported payment {outcome.payment_ref} for due {due.payment_id}")
        # The charge has happened, so reconciliation runs to IDLE even if the caller goes away
        self._settling = asyncio.ensure_future(self._reconcile(due, outcome))
        return await asyncio.shield(self._settling)

    async def wait_settled(self) -> Optional[PaymentResult]:
        if self._settling is None:
            return None
        return await self._settling

    def _advise_test_mode(self, order: PaymentOrder, due: DuePayment) -> None:
        if is_test_payment(order, due):
            logger.warning(f"Order {order.order_id} charges a reduced sandbox amount ({order.amount_in_paise} paise)")
            self._notify(NoticeKind.TEST_MODE, NoticeLevel.INFO, sandbox_notice(order))

    async def _reconcile(self, due: DuePayment, outcome: GatewayOutcome) -> PaymentResult:
        self._transition(PaymentState.VERIFYING)
        loop = await self.reconciler.verify(due.payment_id)

        if loop.confirmed:
            self._transition(PaymentState.CONFIRMED_PAID)
            self._notify(NoticeKind.PAYMENT_CONFIRMED, NoticeLevel.SUCCESS, CONFIRMED_MESSAGE)
            result = PaymentResult(Resolution.CONFIRMED_PAID, CONFIRMED_MESSAGE, outcome, loop)
        else:
            logger.warning(f"Payment {due.payment_id} unconfirmed after {loop.attempt_index} attempts; presuming processing")
            self._transition(PaymentState.PRESUMED_PROCESSING)
            self._notify(NoticeKind.PAYMENT_PROCESSING, NoticeLevel.SUCCESS, PROCESSING_MESSAGE)
            result = PaymentResult(Resolution.PRESUMED_PROCESSING, PROCESSING_MESSAGE, outcome, loop)

        self._transition(PaymentState.SETTLED)
        if loop.confirmed:
            await self.refresher.refresh()
        else:
            self.refresher.schedule(self.policy.processing_refresh_delay)
            self.refresher.schedule(self.policy.catchup_refresh_delay)
        self._transition(PaymentState.IDLE)
        return result
