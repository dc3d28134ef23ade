"""Value objects for neo-quota."""

from .identifiers import TenantId, ObjectRef
from .quantities import (
    GIB,
    QuantityLike,
    parse_quantity,
    is_valid_quantity,
    quantities_equal,
    format_quantity,
)

__all__ = [
    "TenantId",
    "ObjectRef",
    "GIB",
    "QuantityLike",
    "parse_quantity",
    "is_valid_quantity",
    "quantities_equal",
    "format_quantity",
]
