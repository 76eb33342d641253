import asyncio
import pytest
from rentpay.core.config import settings
from rentpay.core.errors import GatewayConfigurationError, GatewayUnavailableError
from rentpay.schemas.rent import PaymentOrder, Prefill
from rentpay.services.gateway import (
    PAYMENT_ERROR_MESSAGE,
    PAYMENT_FAILED_MESSAGE,
    CheckoutLoader,
    GatewayAdapter,
    OutcomeKind,
)
from rentpay.services.sandbox_checkout import SandboxCheckout, sign_payment
from tests.fakes import loader_for

ORDER = PaymentOrder(order_id="order_abc", amount_in_paise=865000, gateway_key_id="rzp_test_order")


class NoisyCheckout:
    """Misbehaving widget that fires every hook on open."""

    def __init__(self, options):
        self.options = options
        self.events = {}

    def on(self, event, callback):
        self.events[event] = callback

    def open(self):
        self.options["handler"]({"razorpay_payment_id": "pay_1", "razorpay_order_id": "order_abc"})
        self.events["payment.failed"]({"error": {"description": "late failure"}})
        self.options["modal"]["ondismiss"]()


class CapturingCheckout(SandboxCheckout):
    last = None

    def __init__(self, options):
        super().__init__(options)
        CapturingCheckout.last = self


async def test_concurrent_loads_share_one_fetch():
    started = []
    release = asyncio.Event()

    async def load():
        started.append(True)
        await release.wait()
        return SandboxCheckout

    loader = CheckoutLoader(load)
    waiters = [asyncio.ensure_future(loader.load()) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()
    factories = await asyncio.gather(*waiters)

    assert started == [True]
    assert loader.load_count == 1
    assert all(f is SandboxCheckout for f in factories)
    assert loader.loaded


async def test_loaded_factory_is_reused():
    loader = loader_for(SandboxCheckout)
    await loader.load()
    await loader.load()
    assert loader.load_count == 1


async def test_failed_load_is_retried_next_time():
    calls = []

    async def load():
        calls.append(True)
        if len(calls) == 1:
            raise OSError("network down")
        return SandboxCheckout

    loader = CheckoutLoader(load)
    with pytest.raises(GatewayUnavailableError):
        await loader.load()
    assert not loader.loaded
    assert await loader.load() is SandboxCheckout


async def test_configured_factory_path_is_imported(monkeypatch):
    monkeypatch.setattr(settings, "CHECKOUT_FACTORY", "rentpay.services.sandbox_checkout:SandboxCheckout")
    assert await CheckoutLoader().load() is SandboxCheckout


async def test_unknown_factory_path_is_unavailable(monkeypatch):
    monkeypatch.setattr(settings, "CHECKOUT_FACTORY", "rentpay.services.no_such_widget:Checkout")
    with pytest.raises(GatewayUnavailableError):
        await CheckoutLoader().load()


async def test_empty_factory_path_is_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "CHECKOUT_FACTORY", "")
    with pytest.raises(GatewayConfigurationError):
        await CheckoutLoader().load()


async def test_success_outcome_carries_gateway_payload():
    adapter = GatewayAdapter(loader=loader_for(SandboxCheckout), key_id="rzp_default")
    outcome = await adapter.open(ORDER, Prefill())

    assert outcome.kind is OutcomeKind.SUCCESS
    assert outcome.order_id == "order_abc"
    assert outcome.payment_ref.startswith("pay_")
    secret = settings.RAZORPAY_KEY_SECRET or "sandbox_secret"
    assert outcome.signature == sign_payment("order_abc", outcome.payment_ref, secret)


async def test_only_first_signal_counts():
    adapter = GatewayAdapter(loader=loader_for(NoisyCheckout), key_id="rzp_default")
    outcome = await adapter.open(ORDER, Prefill())
    assert outcome.kind is OutcomeKind.SUCCESS
    assert outcome.payment_ref == "pay_1"


@pytest.mark.parametrize("event, reason, expected", [
    ("failed", "Card declined", "Card declined"),
    ("failed", None, PAYMENT_FAILED_MESSAGE),
    ("error", None, PAYMENT_ERROR_MESSAGE),
])
async def test_failure_reason(event, reason, expected):
    adapter = GatewayAdapter(loader=loader_for(SandboxCheckout.scripted(event, reason)), key_id="rzp_default")
    outcome = await adapter.open(ORDER, Prefill())
    assert outcome.kind is OutcomeKind.FAILURE
    assert outcome.reason == expected


async def test_dismiss_outcome():
    adapter = GatewayAdapter(loader=loader_for(SandboxCheckout.scripted("dismiss")), key_id="rzp_default")
    outcome = await adapter.open(ORDER, Prefill())
    assert outcome.kind is OutcomeKind.DISMISSED


async def test_checkout_options():
    adapter = GatewayAdapter(loader=loader_for(CapturingCheckout), key_id="rzp_default",
                             name="PG Rent Payment", theme_color="#2563eb")
    opened = []
    await adapter.open(ORDER, Prefill(name="Asha", email="asha@example.com"),
                       description="Rent payment for March 2025", on_open=lambda: opened.append(True))

    options = CapturingCheckout.last.options
    assert options["key"] == "rzp_test_order"
    assert options["amount"] == 865000
    assert options["currency"] == "INR"
    assert options["order_id"] == "order_abc"
    assert options["description"] == "Rent payment for March 2025"
    assert options["prefill"] == {"name": "Asha", "email": "asha@example.com", "contact": ""}
    assert options["theme"] == {"color": "#2563eb"}
    assert opened == [True]


async def test_default_key_used_when_order_has_none():
    adapter = GatewayAdapter(loader=loader_for(CapturingCheckout), key_id="rzp_default")
    await adapter.open(PaymentOrder(order_id="order_x", amount_in_paise=100), Prefill())
    assert CapturingCheckout.last.options["key"] == "rzp_default"


async def test_missing_key_fails_before_opening():
    opened = []
    adapter = GatewayAdapter(loader=loader_for(CapturingCheckout), key_id="")
    CapturingCheckout.last = None
    with pytest.raises(GatewayConfigurationError):
        await adapter.open(PaymentOrder(order_id="order_x", amount_in_paise=100), Prefill(),
                           on_open=lambda: opened.append(True))
    assert CapturingCheckout.last is None
    assert opened == []


async def test_broken_widget_is_unavailable():
    def explode(options):
        raise RuntimeError("Razorpay is not a constructor")

    adapter = GatewayAdapter(loader=loader_for(explode), key_id="rzp_default")
    with pytest.raises(GatewayUnavailableError):
        await adapter.open(ORDER, Prefill())
