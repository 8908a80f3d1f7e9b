"""Hash-based names for ticket directories and attachment payloads."""

import hashlib
from datetime import datetime

from tixfile.constants import (
    MAX_DIRNAME_TITLE,
    SHORT_ID_LENGTH,
    TICKET_DIR_SUFFIX,
    UNSAFE_NAME_CHARS,
)


def generate_hash_id(
    input_data: str,
    nonce: str = "",
    length: int = SHORT_ID_LENGTH,
) -> str:
    """Generate a hex hash prefix from input data.

    Args:
        input_data: Data to hash
        nonce: Optional nonce to handle collisions (empty for the first attempt)
        length: Number of hex characters to keep (default: 8)

    Returns:
        The first ``length`` characters of the MD5 hex digest
    """
    combined = input_data + nonce
    digest = hashlib.md5(combined.encode(), usedforsecurity=False)
    return digest.hexdigest()[:length]


def sanitize_name(name: str) -> str:
    """Make a ticket name safe to use inside a directory name."""
    return UNSAFE_NAME_CHARS.sub("_", name)[:MAX_DIRNAME_TITLE]


def ticket_dirname(name: str, created: datetime, nonce: str = "") -> str:
    """Build the storage directory name for a new ticket.

    The leading hash is derived from the creation timestamp and the name, so
    two tickets with the same name created at different times land in
    different directories. A nonce picks another hash when the first
    candidate directory is taken.

    Args:
        name: Ticket name
        created: Ticket creation timestamp
        nonce: Collision nonce (empty string for the first attempt)

    Returns:
        Directory name like ``"a1b2c3d4-Login_fails.record"``
    """
    digest = generate_hash_id(f"{created.isoformat()}-{name}", nonce)
    return f"{digest}-{sanitize_name(name)}{TICKET_DIR_SUFFIX}"


def short_id_for(dirname: str) -> str:
    """Return the short identifier encoded in a ticket directory name."""
    return dirname[:SHORT_ID_LENGTH]


def attachment_file_id(comment: str, original_name: str, created: datetime) -> str:
    """Generate the payload subdirectory id for an attachment."""
    return generate_hash_id(f"{comment}-{original_name}-{created.isoformat()}")
