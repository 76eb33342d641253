import argparse
import asyncio
import logging
from rentpay.core.config import settings
from rentpay.core.security import PG_TENANT_ROLE, TokenData
from rentpay.services.gateway import CheckoutLoader, GatewayAdapter
from rentpay.services.notifications import RecordingNotifier
from rentpay.services.reconciler import RentPaymentFlow
from rentpay.services.rent_api import LocalRentAPI, RentPaymentAPI
from rentpay.services.rent_card import RentPaymentCard
from rentpay.services.sandbox_checkout import SandboxCheckout
from rentpay.services.static_backend import StaticRentBackend

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("pay_rent")


async def pay_rent(args):
    backend = None
    if args.url:
        api = RentPaymentAPI(base_url=args.url, token=args.token)
    else:
        backend = StaticRentBackend()
        api = LocalRentAPI(backend)

    async def load_sandbox():
        return SandboxCheckout.scripted(args.outcome, args.reason)

    notifier = RecordingNotifier()
    gateway = GatewayAdapter(loader=CheckoutLoader(load_sandbox), key_id=settings.RAZORPAY_KEY_ID or "rzp_test_cli")
    flow = RentPaymentFlow(api, gateway=gateway, notifier=notifier)
    user = TokenData(id=settings.DEFAULT_TENANT_ID, name=args.name, email=args.email, role=PG_TENANT_ROLE)
    card = RentPaymentCard(user, flow)

    try:
        await card.load()
        print("\n".join(card.render()))

        if backend is not None and args.webhook_after is not None and card.due and card.due.has_due:
            # Simulate the gateway webhook confirming the payment out of band
            payment_id = card.due.payment_id
            asyncio.get_running_loop().call_later(args.webhook_after, backend.mark_paid, payment_id)

        result = await card.pay_now()
        await flow.refresher.drain()
    finally:
        await api.aclose()

    for notice in notifier.notices:
        print(f"[{notice.level.value}] {notice.message}")
    print(f"Resolution: {result.resolution.value} ({result.verify_calls} verification calls)")
    print("\n".join(card.render()))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Pay the next rent due through the sandbox checkout.")
    parser.add_argument("--url", help="Backend API base URL; omit to use the in-memory static store")
    parser.add_argument("--token", help="Bearer token for the backend")
    parser.add_argument("--outcome", default="success", choices=["success", "failed", "error", "dismiss"])
    parser.add_argument("--reason", help="Failure reason reported by the sandbox checkout")
    parser.add_argument("--webhook-after", type=float, default=3.0,
                        help="Seconds until the static store marks the payment PAID")
    parser.add_argument("--name", default="Demo Tenant")
    parser.add_argument("--email", default="tenant@example.com")
    asyncio.run(pay_rent(parser.parse_args()))
