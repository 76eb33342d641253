import asyncio
import hashlib
import hmac
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional
from rentpay.core.config import settings

logger = logging.getLogger(__name__)


def sign_payment(order_id: str, payment_id: str, secret: str) -> str:
    # Razorpay signs "<order_id>|<payment_id>" with the key secret
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class SandboxCheckout:
    """
    Test-mode stand-in for the Razorpay checkout widget.

    Same surface as the browser widget: constructed from the options dict,
    ``on(event, callback)`` and ``open()``. The scripted outcome fires on the
    next loop iteration after ``open()``: "success", "failed", "error" or
    "dismiss".
    """

    def __init__(self, options: Dict[str, Any], outcome: str = "success", reason: Optional[str] = None):
        self.options = options
        self.outcome = outcome
        self.reason = reason
        self.opened = False
        self._events: Dict[str, List[Callable]] = {}

    @classmethod
    def scripted(cls, outcome: str = "success", reason: Optional[str] = None) -> Callable[[Dict[str, Any]], "SandboxCheckout"]:
        return lambda options: cls(options, outcome=outcome, reason=reason)

    def on(self, event: str, callback: Callable) -> None:
        self._events.setdefault(event, []).append(callback)

    def open(self) -> None:
        if self.opened:
            raise RuntimeError("Checkout already open")
        self.opened = True
        logger.info(f"Sandbox checkout opened for order {self.options.get('order_id')}")
        asyncio.get_running_loop().call_soon(self._complete)

    def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        for callback in self._events.get(event, []):
            callback(payload)

    def _complete(self) -> None:
        order_id = self.options.get("order_id")
        if self.outcome == "success":
            payment_id = f"pay_{uuid.uuid4().hex[:14]}"
            secret = settings.RAZORPAY_KEY_SECRET or "sandbox_secret"
            self.options["handler"]({
                "razorpay_payment_id": payment_id,
                "razorpay_order_id": order_id,
                "razorpay_signature": sign_payment(order_id, payment_id, secret),
            })
        elif self.outcome in ("failed", "error"):
            error = {"code": "BAD_REQUEST_ERROR", "description": self.reason} if self.reason else {}
            self._emit(f"payment.{self.outcome}", {"error": error})
        elif self.outcome == "dismiss":
            self.options["modal"]["ondismiss"]()
        else:
            raise ValueError(f"Unknown sandbox outcome '{self.outcome}'")
