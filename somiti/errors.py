"""
Error Taxonomy

Domain exceptions raised by the ledger. The HTTP layer maps them to
responses; the core never retries.
"""


class SomitiError(Exception):
    """Base exception for all ledger errors"""


class NotFoundError(SomitiError):
    """A referenced loan, member, scheme or setting does not exist"""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} {entity_id} not found")


class ValidationError(SomitiError):
    """A write was rejected because its input is missing or malformed"""


class InvalidCadenceError(ValidationError):
    """An installment-type label is not in the cadence table"""

    def __init__(self, installment_type):
        self.installment_type = installment_type
        super().__init__(f"Unrecognized installment type: {installment_type!r}")


class NotificationFailure(SomitiError):
    """The SMS gateway rejected or failed to deliver a message"""
