import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set
from rentpay.core.errors import RentPaymentError
from rentpay.schemas.rent import DuePayment
from rentpay.services.notifications import LoggingNotifier, Notice, NoticeKind, NoticeLevel, Notifier

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class DueRefresher:
    """
    Keeps the rendered due payment in step with the backend.

    A failed refresh leaves the previous due in place; the user can retry.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[DuePayment]],
        notifier: Optional[Notifier] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.fetch = fetch
        self.notifier = notifier or LoggingNotifier()
        self.sleep = sleep
        self.current: Optional[DuePayment] = None
        self.loading = False
        self._pending: Set[asyncio.Task] = set()

    async def refresh(self) -> Optional[DuePayment]:
        self.loading = True
        try:
            due = await self.fetch()
        except Exception as e:
            logger.error(f"Refreshing due payment failed: {e}")
            message = e.message if isinstance(e, RentPaymentError) else "Failed to load payment details"
            self.notifier.notify(Notice(NoticeKind.DUE_LOAD_FAILED, NoticeLevel.ERROR, message))
            return self.current
        finally:
            self.loading = False
        self.current = due
        logger.debug(f"Due refreshed: hasDue={due.has_due} paymentId={due.payment_id}")
        return due

    async def _refresh_later(self, delay: float) -> Optional[DuePayment]:
        await self.sleep(delay)
        return await self.refresh()

    def schedule(self, delay: float) -> asyncio.Task:
        logger.info(f"Background due refresh scheduled in {delay}s")
        task = asyncio.ensure_future(self._refresh_later(delay))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def cancel_pending(self) -> None:
        for task in list(self._pending):
            task.cancel()
