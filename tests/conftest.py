import pytest
from rentpay.services.gateway import GatewayAdapter
from rentpay.services.notifications import RecordingNotifier
from rentpay.services.reconciler import RentPaymentFlow, VerificationPolicy
from rentpay.services.sandbox_checkout import SandboxCheckout
from tests.fakes import RecordingSleep, loader_for


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def make_flow(notifier, sleeper):
    def build(api, outcome="success", reason=None, factory=None, key_id="rzp_test_key", loader=None):
        gateway = GatewayAdapter(
            loader=loader or loader_for(factory or SandboxCheckout.scripted(outcome, reason)),
            key_id=key_id,
        )
        return RentPaymentFlow(api, gateway=gateway, notifier=notifier, policy=VerificationPolicy(), sleep=sleeper)
    return build
