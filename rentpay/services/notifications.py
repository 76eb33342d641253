import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Protocol

logger = logging.getLogger("rentpay.notices")


class NoticeKind(str, Enum):
    DUE_LOAD_FAILED = "due_load_failed"
    ORDER_FAILED = "order_failed"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_DISMISSED = "payment_dismissed"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_PROCESSING = "payment_processing"
    TEST_MODE = "test_mode"


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    level: NoticeLevel
    message: str


class Notifier(Protocol):
    def notify(self, notice: Notice) -> None: ...


class LoggingNotifier:
    """Writes user-facing notices to the log when no toast channel is attached."""

    _levels = {
        NoticeLevel.SUCCESS: logging.INFO,
        NoticeLevel.INFO: logging.INFO,
        NoticeLevel.ERROR: logging.ERROR,
    }

    def notify(self, notice: Notice) -> None:
        logger.log(self._levels[notice.level], f"[{notice.kind.value}] {notice.message}")


class RecordingNotifier:
    def __init__(self):
        self.notices: List[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)

    def kinds(self) -> List[NoticeKind]:
        return [n.kind for n in self.notices]

    def last(self) -> Notice:
        return self.notices[-1]
