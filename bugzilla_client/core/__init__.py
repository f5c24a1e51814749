"""Core package for functionality shared by every layer of the client.

- **config**: Centralized configuration management with environment support
- **constants**: Wire vocabulary constants and server-documented limits
- **context**: Correlation and request ID management for RPC calls
- **exceptions**: Structured exception hierarchy with error codes
- **error_context**: Sensitive data sanitization for safe logging
- **logging**: Structured logging built on Loguru
- **types**: Type aliases for the XML-RPC structured values
"""
