from decimal import Decimal


class FulfillmentError(Exception): ...


class ValidationError(FulfillmentError): ...


class NotFound(FulfillmentError): ...


class AlreadyProcessed(FulfillmentError): ...


class Conflict(FulfillmentError): ...


class DependencyFailure(FulfillmentError): ...


class InvalidTransition(FulfillmentError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition from {_label(current)} to {_label(target)}")


class InsufficientBalance(FulfillmentError):
    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient balance: requested {requested}, available {available}, shortfall {self.shortfall}"
        )


def _label(status) -> str:
    return getattr(status, "value", status)
