"""Exceptions shared across the stockroom apps"""


class StockroomError(Exception):
    """Base class for stockroom errors"""


class NotWritableError(StockroomError):
    """Raised when a payload names fields outside an entity's writable list"""

    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(f"Fields not writable: {', '.join(self.fields)}")


class InsufficientStock(StockroomError):
    """Raised when consuming more stock than a purchase line has available"""

    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__(f"Requested {requested} but only {available} available")


class TransportError(StockroomError):
    """Raised when a round trip fails for reasons other than validation"""

    def __init__(self, message, status=None):
        self.status = status
        super().__init__(message)
