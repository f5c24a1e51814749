"""Conversion between typed call objects and XML-RPC structured values.

- ``structured``: typed reads with coercion over response structs
- ``shapes``: parameter shapes and the shape cache for custom field sets
- ``params``: call parameters that track which fields were touched
- ``marshaller``: call parameters to request structs
- ``unmarshaller``: response structs to domain models
"""
