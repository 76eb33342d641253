"""
Razorpay checkout integration for the console.

The checkout widget is callback driven: a success ``handler``, a
``modal.ondismiss`` hook and ``payment.failed`` / ``payment.error`` events.
``GatewayAdapter.open`` folds all of them into a single awaitable
``GatewayOutcome``. Only the first signal counts; anything the widget fires
afterwards is logged and dropped.
"""
import asyncio
import importlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional
from rentpay.core.config import settings
from rentpay.core.errors import GatewayConfigurationError, GatewayUnavailableError
from rentpay.schemas.rent import PaymentOrder, Prefill

logger = logging.getLogger(__name__)

CheckoutFactory = Callable[[Dict[str, Any]], Any]

PAYMENT_FAILED_MESSAGE = "Payment failed. Please try again."
PAYMENT_ERROR_MESSAGE = "An error occurred during payment."


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DISMISSED = "dismissed"


@dataclass(frozen=True)
class GatewayOutcome:
    kind: OutcomeKind
    payment_ref: Optional[str] = None
    order_id: Optional[str] = None
    signature: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, payment_ref: str, order_id: str = None, signature: str = None) -> "GatewayOutcome":
        return cls(OutcomeKind.SUCCESS, payment_ref=payment_ref, order_id=order_id, signature=signature)

    @classmethod
    def failure(cls, reason: str) -> "GatewayOutcome":
        return cls(OutcomeKind.FAILURE, reason=reason)

    @classmethod
    def dismissed(cls) -> "GatewayOutcome":
        return cls(OutcomeKind.DISMISSED)


def import_factory(path: str) -> CheckoutFactory:
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise GatewayConfigurationError(f"Invalid checkout factory path '{path}'")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


class CheckoutLoader:
    """
    Loads the checkout component once per process.

    Concurrent ``load()`` calls share a single in-flight load. A failed load
    is not remembered, so the next payment attempt tries again.
    """

    def __init__(self, load_factory: Optional[Callable[[], Awaitable[CheckoutFactory]]] = None):
        self._load_factory = load_factory or self._import_configured
        self._factory: Optional[CheckoutFactory] = None
        self._inflight: Optional[asyncio.Task] = None
        self.load_count = 0

    @property
    def loaded(self) -> bool:
        return self._factory is not None

    async def _import_configured(self) -> CheckoutFactory:
        path = settings.CHECKOUT_FACTORY
        if not path:
            raise GatewayConfigurationError()
        try:
            return import_factory(path)
        except (ImportError, AttributeError) as e:
            raise GatewayUnavailableError(f"Unable to load Razorpay: {e}") from e

    async def _run_load(self) -> CheckoutFactory:
        self.load_count += 1
        try:
            factory = await self._load_factory()
            self._factory = factory
            logger.info("Checkout component loaded.")
            return factory
        except GatewayUnavailableError:
            raise
        except Exception as e:
            logger.error(f"Checkout load failed: {e}")
            raise GatewayUnavailableError(f"Unable to load Razorpay: {e}") from e
        finally:
            self._inflight = None

    async def load(self) -> CheckoutFactory:
        if self._factory is not None:
            return self._factory
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._run_load())
        # shield: one cancelled waiter must not abort the load for the others
        return await asyncio.shield(self._inflight)

    def reset(self) -> None:
        self._factory = None
        self._inflight = None


# Process-wide checkout, shared by every adapter unless one is injected
checkout_loader = CheckoutLoader()


def _failure_reason(response: Any, default: str) -> str:
    if isinstance(response, dict):
        error = response.get("error") or {}
        if isinstance(error, dict) and error.get("description"):
            return error["description"]
    return default


class GatewayAdapter:
    def __init__(
        self,
        loader: Optional[CheckoutLoader] = None,
        key_id: Optional[str] = None,
        name: Optional[str] = None,
        theme_color: Optional[str] = None,
    ):
        self.loader = loader or checkout_loader
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.name = name or settings.CHECKOUT_NAME
        self.theme_color = theme_color or settings.CHECKOUT_THEME_COLOR

    async def open(
        self,
        order: PaymentOrder,
        prefill: Prefill,
        description: str = "",
        on_open: Optional[Callable[[], None]] = None,
    ) -> GatewayOutcome:
        """
        Open checkout for ``order`` and wait for its single terminal outcome.

        Raises GatewayUnavailableError (or GatewayConfigurationError) before
        anything is shown when the component cannot be loaded or no key is
        configured. ``on_open`` runs once the overlay is up.
        """
        factory = await self.loader.load()

        key = order.gateway_key_id or self.key_id
        if not key:
            raise GatewayConfigurationError()

        outcome: asyncio.Future = asyncio.get_running_loop().create_future()

        def settle(result: GatewayOutcome) -> None:
            if outcome.done():
                logger.warning(
                    f"Ignoring {result.kind.value} signal for order {order.order_id}; "
                    f"already resolved as {outcome.result().kind.value}"
                )
                return
            logger.info(f"Checkout for order {order.order_id} resolved: {result.kind.value}")
            outcome.set_result(result)

        def on_success(response: Dict[str, Any]) -> None:
            settle(GatewayOutcome.success(
                payment_ref=response.get("razorpay_payment_id"),
                order_id=response.get("razorpay_order_id"),
                signature=response.get("razorpay_signature"),
            ))

        options = {
            "key": key,
            "amount": order.amount_in_paise,
            "currency": order.currency or "INR",
            "name": self.name,
            "description": description,
            "order_id": order.order_id,
            "prefill": prefill.model_dump(),
            "notes": dict(order.notes),
            "theme": {"color": self.theme_color},
            "handler": on_success,
            "modal": {"ondismiss": lambda *args: settle(GatewayOutcome.dismissed())},
        }

        try:
            checkout = factory(options)
            checkout.on("payment.failed", lambda response: settle(
                GatewayOutcome.failure(_failure_reason(response, PAYMENT_FAILED_MESSAGE))))
            checkout.on("payment.error", lambda response: settle(
                GatewayOutcome.failure(_failure_reason(response, PAYMENT_ERROR_MESSAGE))))
            checkout.open()
        except Exception as e:
            logger.error(f"Could not open checkout for order {order.order_id}: {e}")
            raise GatewayUnavailableError("Unable to initialize Razorpay") from e

        if on_open is not None:
            on_open()
        return await outcome
