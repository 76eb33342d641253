from rentpay.core.security import PG_TENANT_ROLE, TokenData
from rentpay.services.reconciler import Resolution
from rentpay.services.rent_card import RentPaymentCard, prefill_for
from tests.fakes import PAID, FakeRentAPI, make_due

TENANT = TokenData(id="t-1", name="Asha Rao", email="asha@example.com", phone="9876543210", role=PG_TENANT_ROLE)


async def test_card_loads_for_pg_tenant(make_flow):
    api = FakeRentAPI()
    card = RentPaymentCard(TENANT, make_flow(api))

    due = await card.load()

    assert due is api.due
    assert card.render()[0] == "Next Rent Due"


async def test_card_skips_other_roles(make_flow):
    api = FakeRentAPI()
    card = RentPaymentCard(TokenData(id="o-1", role="FLAT_OWNER"), make_flow(api))

    assert await card.load() is None
    assert api.next_due_calls == 0
    assert card.render()[-1] == "No pending payments at this time."


async def test_pay_now_uses_loaded_due_and_user_prefill(make_flow):
    api = FakeRentAPI(due=make_due(payment_id="rent-42"), verify_results=[PAID])
    card = RentPaymentCard(TENANT, make_flow(api))
    await card.load()

    result = await card.pay_now()

    assert result.resolution is Resolution.CONFIRMED_PAID
    assert api.order_calls == ["rent-42"]
    assert not card.paying


async def test_pay_now_without_due_does_nothing(make_flow):
    api = FakeRentAPI(due=make_due(has_due=False))
    card = RentPaymentCard(TENANT, make_flow(api))
    await card.load()

    result = await card.pay_now()

    assert result.resolution is Resolution.SKIPPED
    assert api.order_calls == []


def test_prefill_for_user():
    prefill = prefill_for(TENANT)
    assert prefill.name == "Asha Rao"
    assert prefill.email == "asha@example.com"
    assert prefill.contact == "9876543210"
    assert prefill_for(None).name == ""
