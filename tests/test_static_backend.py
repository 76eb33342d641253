from decimal import Decimal
import pytest
from rentpay.core.config import settings
from rentpay.core.errors import DueNotFoundError, OrderCreationError
from rentpay.services.static_backend import StaticDue, StaticRentBackend

TENANT = "tenant-1"


@pytest.fixture
def backend():
    return StaticRentBackend([
        StaticDue("rent-04", TENANT, Decimal("8500"), 4, 2025),
        StaticDue("rent-03", TENANT, Decimal("8500"), 3, 2025, late_fee_amount=Decimal("150")),
        StaticDue("other", "tenant-2", Decimal("5000"), 1, 2025),
    ])


async def test_next_due_is_oldest_open_period(backend):
    due = await backend.get_next_due(TENANT)
    assert due.payment_id == "rent-03"
    assert due.total_amount == Decimal("8650")


async def test_next_due_moves_on_once_paid(backend):
    backend.mark_paid("rent-03")
    assert (await backend.get_next_due(TENANT)).payment_id == "rent-04"
    backend.mark_paid("rent-04")
    assert not (await backend.get_next_due(TENANT)).has_due


async def test_test_mode_order_charges_sandbox_amount(backend, monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_TEST_MODE", True)
    order = await backend.create_order(TENANT, "rent-03")
    assert order.amount_in_paise == settings.RAZORPAY_TEST_AMOUNT_PAISE
    assert order.is_flagged_test
    assert order.order_id in backend.dues["rent-03"].orders


async def test_live_mode_order_charges_full_amount(backend, monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_TEST_MODE", False)
    order = await backend.create_order(TENANT, "rent-03")
    assert order.amount_in_paise == 865000
    assert not order.is_flagged_test


async def test_every_attempt_gets_a_fresh_order(backend):
    first = await backend.create_order(TENANT, "rent-03")
    second = await backend.create_order(TENANT, "rent-03")
    assert first.order_id != second.order_id


async def test_paid_due_rejects_new_order(backend):
    backend.mark_paid("rent-03")
    with pytest.raises(OrderCreationError, match="already been completed"):
        await backend.create_order(TENANT, "rent-03")


async def test_other_tenants_due_is_not_orderable(backend):
    with pytest.raises(OrderCreationError):
        await backend.create_order(TENANT, "other")


async def test_verify_is_read_only(backend):
    first = await backend.verify_payment(TENANT, "rent-03")
    second = await backend.verify_payment(TENANT, "rent-03")
    assert not first.confirmed and not second.confirmed
    assert backend.dues["rent-03"].status == "PENDING"

    backend.mark_paid("rent-03")
    assert (await backend.verify_payment(TENANT, "rent-03")).confirmed


async def test_verify_unknown_payment(backend):
    with pytest.raises(DueNotFoundError):
        await backend.verify_payment(TENANT, "missing")
