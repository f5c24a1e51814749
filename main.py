"""Main entry point for checking a connection to a Bugzilla server."""

import sys

from loguru import logger

from bugzilla_client import BugzillaError, BugzillaServer
from bugzilla_client.core.config import get_settings
from bugzilla_client.core.logging import setup_logging


def main(argv: list[str] | None = None) -> int:
    """Connect to the configured server and report its version and extensions.

    Args:
        argv: Command line arguments. The optional first one overrides the
            configured server URL.

    Returns:
        int: Process exit code.
    """
    args = sys.argv[1:] if argv is None else argv
    settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    url = args[0] if args else None
    try:
        with BugzillaServer.connect(url, settings) as server:
            version = server.version
            extensions = server.extensions()
    except BugzillaError as e:
        logger.error("Could not query server: {}", e.message, error_code=e.error_code)
        return 1

    logger.info("Bugzilla {}", version, version=version)
    for extension in extensions:
        logger.info(
            "Extension {} {}",
            extension.name,
            extension.version,
            extension=extension.name,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
