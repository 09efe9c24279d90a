"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ResourceUnavailableError(DomainException):
    """A student, debt, concept or contact record does not exist"""

    def __init__(self, resource: str, resource_id: object):
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class InvalidDebtTransitionError(DomainException):
    """Debt status change would regress from paid"""

    pass


class InvalidAmountError(DomainException):
    """Monetary amount is malformed or out of range"""

    pass


class StoreUnavailableError(DomainException):
    """Persistent store is unreachable or rejected the operation"""

    pass


class NotificationDeliveryError(DomainException):
    """Notification sender gave up after exhausting retries"""

    pass
