"""Infrastructure layer for the remote call transport.

This package implements the one external integration the client depends on:
a blocking XML-RPC transport that sends a named call with a structured
parameter value and returns the structured result, or raises a distinguishable
fault carrying the server's numeric code and message.

Key responsibilities:
- **Request encoding**: XML-RPC method calls via ``xmlrpc.client``
- **HTTP exchange**: POST over ``httpx`` with a persistent cookie jar
- **Failure classification**: faults versus transport failures
"""
