"""Error types raised by the lending ledger.

Every error a caller is expected to handle derives from LedgerError, so the
CLI (or any web layer in front of the managers) can catch one base class and
report the message.
"""

from pydantic import ValidationError as PydanticValidationError


class LedgerError(Exception):
    """Base class for gearledger errors."""

    pass


class ValidationError(LedgerError):
    """Input is malformed or missing a required value. Nothing was persisted."""

    pass


class ConflictError(LedgerError):
    """A uniqueness or exclusivity rule was violated."""

    pass


class NotFoundError(LedgerError):
    """A referenced record does not exist or is not eligible."""

    pass


class TransportError(LedgerError):
    """Bulk input could not be read at all."""

    pass


ITEM_ON_LOAN = "item already on loan"


def from_pydantic(error: PydanticValidationError) -> ValidationError:
    """Turn a pydantic validation failure into a gearledger ValidationError.

    Only the first problem is reported, named by its field.
    """
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "value"
    return ValidationError(f"Invalid {field}: {first['msg']}")
