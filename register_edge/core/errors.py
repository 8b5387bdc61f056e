from typing import Optional


class RegisterError(Exception):
    """Base class for errors raised by the register services."""


class NotFoundError(RegisterError):
    pass


class BusinessError(RegisterError):
    pass


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class EmptyBasketError(BusinessError):
    def __init__(self):
        super().__init__("Cannot checkout with empty basket")


class InvalidOrderStateError(BusinessError):
    def __init__(self, order_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} order {order_id} in status {status}")
        self.order_id = order_id
        self.status = status


class PlatformError(RegisterError):
    """A platform rejected or failed to accept an order."""


class PlatformTransportError(PlatformError):
    """The platform could not be reached at all (DNS, connect, timeout)."""


class PlatformHTTPError(PlatformError):
    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(message or f"Platform request failed with status {status_code}")
        self.status_code = status_code


class PlatformNotConfiguredError(PlatformError):
    def __init__(self, platform: str):
        super().__init__(f"No order service configured for platform {platform!r}")
        self.platform = platform


class LocalApiError(RegisterError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
