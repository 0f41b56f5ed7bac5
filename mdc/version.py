"""Build identification for the mdc command."""

VERSION = "dev"
COMMIT = "none"
DATE = "unknown"

COMMAND_NAME = "mdc"


def version_string() -> str:
    """Return the version, followed by commit and build date when they are known."""
    parts = [VERSION]
    if COMMIT and COMMIT != "none":
        parts.append(COMMIT)
    if DATE and DATE != "unknown":
        parts.append(DATE)
    return " ".join(parts)