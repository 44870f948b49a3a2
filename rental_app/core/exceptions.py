class DeliveryError(RuntimeError):
    """A notification transport refused or failed to deliver a message."""


class SmsDeliveryError(DeliveryError):
    pass


class EmailDeliveryError(DeliveryError):
    pass


class PaymentGatewayError(RuntimeError):
    def __init__(self, message: str, payload: dict | None = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}


class CircuitOpenError(RuntimeError):
    pass
