"""Record identifiers.

Users and todos are keyed by the 24 character hex form of a 12-byte
ObjectId, the same shape a document store hands out.
"""
from bson import ObjectId


def new_object_id() -> str:
    return str(ObjectId())


def is_valid_object_id(value: object) -> bool:
    """Return True if ``value`` is a well-formed hex identifier.

    Only the 24 character hex string form is accepted; ``ObjectId.is_valid``
    alone would also take raw 12-byte strings.
    """
    return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)
