"""
Errors raised along the rent payment flow.

Only configuration, order-creation and gateway-load errors ever reach the
user as an error notice. Verification errors are absorbed by the retry loop.
"""


class RentPaymentError(Exception):
    """Base class for every rent payment failure."""

    default_message = "Unable to initiate payment"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class DueLoadError(RentPaymentError):
    default_message = "Failed to load payment details"


class OrderCreationError(RentPaymentError):
    default_message = "Unable to initiate payment"


class GatewayUnavailableError(RentPaymentError):
    default_message = "Unable to load Razorpay"


class GatewayConfigurationError(GatewayUnavailableError):
    default_message = "Payment gateway is not configured"


class VerificationError(RentPaymentError):
    default_message = "Payment verification failed"


class DueNotFoundError(RentPaymentError):
    default_message = "Payment not found"


class InvalidTransition(RentPaymentError):
    def __init__(self, current, target):
        super().__init__(f"Illegal payment state transition {current.value} -> {target.value}")
        self.current = current
        self.target = target
