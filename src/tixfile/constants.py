"""Constants for tixfile."""

from __future__ import annotations

import re

# Config file searched for upward from the working directory
CONFIG_FILENAME = ".tixfile.toml"

# Default locations, relative to the directory holding the config file
DEFAULT_TICKETS_DIRECTORY = ".tickets"
DEFAULT_CACHE_DIRECTORY = ".ticket_cache"

# The first entry of each list is the default for new tickets
DEFAULT_SEVERITIES = ["normal", "blocking", "critical", "minor", "feature", "question"]
DEFAULT_STATUSES = ["opened", "closed", "postponed", "testing"]

# Severity -> rich color name for list/show output
DEFAULT_SEVERITY_COLORS = {
    "blocking": "bold red",
    "critical": "red",
    "normal": "magenta",
    "minor": "yellow",
    "feature": "blue",
    "question": "cyan",
}

# Ticket directory layout
TICKET_DIR_SUFFIX = ".record"
RECORD_FILENAME = "record.json"
COMMENTS_FILENAME = "comments.json"
ATTACHMENTS_FILENAME = "attachments.json"
ATTACHMENTS_DIRNAME = "attachments"

# Index snapshot layout
SNAPSHOT_FILENAME = "index.json"
SNAPSHOT_LOCK_FILENAME = ".index.lock"
SNAPSHOT_VERSION = 1

# Short identifiers are the leading characters of a ticket directory name
SHORT_ID_LENGTH = 8

# Keep the sanitized part of a directory name well under NAME_MAX (255)
MAX_DIRNAME_TITLE = 120

# Attempts at a fresh ticket directory name before giving up
MAX_DIRNAME_ATTEMPTS = 10

# Characters replaced by "_" when a ticket name becomes a directory name
UNSAFE_NAME_CHARS = re.compile(r"[/\\ :?]")

# Ticket attributes a query may sort on
SORTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "id",
        "name",
        "description",
        "status",
        "severity",
        "created",
        "updated",
        "created_by",
        "tags",
        "modules",
    },
)
