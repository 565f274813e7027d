"""Failure kinds raised by the checkout gateway.

Every error carries the HTTP status and the human-readable reason the routes
send back. Anything raised here is terminal for the current request.
"""


class PaymentError(Exception):
    status_code = 400
    reason = "Payment request rejected"

    def __init__(self, reason: str = None):
        self.reason = reason or self.reason
        super().__init__(self.reason)


class GatewayDisabledError(PaymentError):
    reason = "Stripe Checkout is not enabled"


class OutOfRangeError(PaymentError):
    reason = "Recharge price is not in range"


class WebhookRegistrationError(PaymentError):
    reason = "Stripe webhook endpoint check failed! Please contact your website admin."


class InvalidPayloadError(PaymentError):
    reason = "Payload is not valid"


class InvalidSignatureError(PaymentError):
    reason = "Signature check failed!"


class UnsupportedEventError(PaymentError):
    reason = "Not a valid event"


class MissingPaymentIntentError(PaymentError):
    reason = "Not a valid checkout session, no payment intent"


class MissingPaymentMethodError(PaymentError):
    reason = "Not a valid checkout session, no payment info"


class OrderNotFoundError(PaymentError):
    reason = "Order not found"


class OrderMismatchError(PaymentError):
    reason = "Checkout session does not belong to the order owner"


class UpstreamUnavailableError(PaymentError):
    status_code = 503
    reason = "Payment provider is unavailable, please try again later"
