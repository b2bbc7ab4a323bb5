"""Error taxonomy shared by the lookup, ticket and routing layers."""


class SupportError(Exception):
    """Base class for errors raised by the support core."""


class ValidationError(SupportError):
    """Missing or malformed argument; the user can fix it."""


class NotFoundError(SupportError):
    """Lookup or update target does not exist."""


class StoreError(SupportError):
    """Backing store query failed."""


class MissingColumnError(StoreError):
    """Queried column does not exist in the table."""


class MissingRelationError(StoreError):
    """Queried table does not exist."""


class DeliveryError(SupportError):
    """Message could not be delivered to a recipient."""

    def __init__(self, recipient_id, kind, detail: str | None = None):
        self.recipient_id = recipient_id
        self.kind = kind
        self.detail = detail
        super().__init__(f"delivery to {recipient_id} failed ({kind}): {detail or '-'}")
