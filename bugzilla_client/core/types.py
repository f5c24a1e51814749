"""Type aliases for dynamic data structures throughout the client.

This module centralizes type definitions for data that cannot be statically
typed, providing clear semantic meaning and documentation for these types.

The XML-RPC wire format is dynamically typed: every call's parameters and
results are nested structs, arrays and scalars. ``StructuredValue`` names
that shape so the marshalling layer can be checked statically.
"""

from datetime import datetime

# Any value that can travel over the XML-RPC wire
# Absence of a key in a struct is distinct from a key holding None
type StructuredValue = (
    dict[str, "StructuredValue"]
    | list["StructuredValue"]
    | str
    | int
    | float
    | bool
    | bytes
    | datetime
    | None
)

# One level of an XML-RPC struct
type StructuredMapping = dict[str, StructuredValue]
