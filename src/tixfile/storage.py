"""Directory-per-ticket storage with atomic document writes."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

import orjson

from tixfile.constants import (
    ATTACHMENTS_FILENAME,
    COMMENTS_FILENAME,
    MAX_DIRNAME_ATTEMPTS,
    RECORD_FILENAME,
)
from tixfile.idgen import short_id_for, ticket_dirname
from tixfile.models import (
    Attachment,
    Comment,
    Ticket,
    attachment_to_dict,
    comment_to_dict,
    dict_to_attachment,
    dict_to_comment,
    dict_to_ticket,
    ticket_to_dict,
    validate_ticket,
)

logger = logging.getLogger(__name__)


def read_document(path: Path) -> Any:
    """Read and decode one JSON document.

    Raises:
        RuntimeError: If the file cannot be read
        ValueError: If the contents are not valid JSON
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        msg = f"Failed to read {path}: {e}"
        raise RuntimeError(msg) from e
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        msg = f"Invalid document {path}: {e}"
        raise ValueError(msg) from e


def write_document(path: Path, data: Any) -> None:
    """Write a JSON document atomically.

    The document is written to a temporary file in the same directory,
    fsynced, then renamed over the target, so readers only ever see the
    old or the new content.

    Raises:
        RuntimeError: If the document cannot be written
    """
    payload = orjson.dumps(data, option=orjson.OPT_INDENT_2) + b"\n"
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            try:
                tmp_file.write(payload)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            except OSError:
                tmp_path.unlink(missing_ok=True)
                raise
    except OSError as e:
        msg = f"Failed to write temporary file for {path}: {e}"
        raise RuntimeError(msg) from e

    try:
        tmp_path.replace(path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        msg = f"Failed to write {path}: {e}"
        raise RuntimeError(msg) from e


def read_comments(directory: Path) -> list[Comment]:
    """Read the comment log of a ticket directory (empty if absent)."""
    path = directory / COMMENTS_FILENAME
    if not path.is_file():
        return []
    data = read_document(path)
    try:
        return [dict_to_comment(item) for item in data or []]
    except (KeyError, TypeError, ValueError) as e:
        msg = f"Invalid comment log {path}: {e}"
        raise ValueError(msg) from e


def read_attachments(directory: Path) -> list[Attachment]:
    """Read the attachment log of a ticket directory (empty if absent)."""
    path = directory / ATTACHMENTS_FILENAME
    if not path.is_file():
        return []
    data = read_document(path)
    try:
        return [dict_to_attachment(item) for item in data or []]
    except (KeyError, TypeError, ValueError) as e:
        msg = f"Invalid attachment log {path}: {e}"
        raise ValueError(msg) from e


class TicketStore:
    """Reads and writes tickets as one directory per ticket."""

    def __init__(
        self,
        tickets_directory: str | Path,
        after_add_ticket: str = "",
    ) -> None:
        """Initialize storage.

        Args:
            tickets_directory: Directory holding one subdirectory per ticket
            after_add_ticket: Command run with the new ticket directory as
                its last argument after a ticket is first saved. Empty to
                disable.
        """
        self.tickets_directory = Path(tickets_directory)
        self.after_add_ticket = after_add_ticket

    def load(self, directory: str | Path) -> Ticket:
        """Load a ticket from its directory.

        Only the record document is read; comments and attachments are read
        when first accessed.

        Raises:
            RuntimeError: If the directory or its record document is missing
            ValueError: If the record document is malformed
        """
        directory = Path(directory)
        if not directory.is_dir():
            msg = f"Ticket directory '{directory}' does not exist"
            raise RuntimeError(msg)

        data = read_document(directory / RECORD_FILENAME)
        if not isinstance(data, dict):
            msg = f"Invalid ticket record in {directory}"
            raise ValueError(msg)
        return dict_to_ticket(data, directory=directory)

    def save(self, ticket: Ticket) -> Ticket:
        """Save a ticket, creating its directory on first save.

        Every save is a full snapshot of the in-memory state: the record
        document is always rewritten, and the comment and attachment logs are
        rewritten whenever they exist or have entries.

        Args:
            ticket: The ticket to save

        Returns:
            The saved ticket, with ``id`` and ``directory`` assigned

        Raises:
            ValueError: If the ticket is invalid
            RuntimeError: If the directory or a document cannot be written
        """
        validate_ticket(ticket)

        created_dir = False
        if ticket.directory is None:
            # Pin the in-memory lists before a directory exists to read from
            ticket.comments  # noqa: B018
            ticket.attachments  # noqa: B018
            directory = self._create_directory(ticket)
            created_dir = True
            ticket.directory = directory
            ticket.id = short_id_for(directory.name)
        elif ticket.id is None:
            ticket.id = short_id_for(ticket.directory.name)

        ticket.updated = datetime.now().astimezone()
        directory = ticket.directory

        write_document(directory / RECORD_FILENAME, ticket_to_dict(ticket))

        comments_path = directory / COMMENTS_FILENAME
        if ticket.comments or comments_path.exists():
            write_document(
                comments_path,
                [comment_to_dict(c) for c in ticket.comments],
            )

        attachments_path = directory / ATTACHMENTS_FILENAME
        if ticket.attachments or attachments_path.exists():
            write_document(
                attachments_path,
                [attachment_to_dict(a) for a in ticket.attachments],
            )

        logger.debug("Saved ticket %s to %s", ticket.id, directory)

        if created_dir:
            self._run_after_add_hook(directory)

        return ticket

    def attach(
        self,
        ticket: Ticket,
        source: str | Path,
        comment: str = "",
        created_by: str | None = None,
    ) -> Attachment:
        """Copy a file into the ticket's storage and record it.

        The ticket is saved first if it has no directory yet. The attachment
        log itself is written by the next ``save``.

        Raises:
            FileNotFoundError: If ``source`` is not a file
            RuntimeError: If the payload cannot be copied
        """
        source = Path(source)
        if not source.is_file():
            msg = f"Attachment source '{source}' is not a file"
            raise FileNotFoundError(msg)

        if ticket.directory is None:
            self.save(ticket)
        if ticket.directory is None:
            msg = f"Ticket '{ticket.name}' has no storage directory"
            raise RuntimeError(msg)

        attachment = Attachment(
            comment=comment,
            original_name=source.name,
            created_by=created_by,
        )
        target = ticket.directory / attachment.relative_path()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as e:
            msg = f"Failed to copy attachment '{source}' to '{target}': {e}"
            raise RuntimeError(msg) from e

        ticket.add_attachment(attachment)
        logger.debug(
            "Attached %s to ticket %s as %s",
            source,
            ticket.id,
            attachment.file_id,
        )
        return attachment

    def _create_directory(self, ticket: Ticket) -> Path:
        """Create a fresh directory for a new ticket.

        A taken name is never reused: the hash is retried with a nonce, so a
        new ticket cannot overwrite the documents of an existing one.

        Raises:
            RuntimeError: If no free directory name is found or creation fails
        """
        for attempt in range(MAX_DIRNAME_ATTEMPTS):
            nonce = str(attempt) if attempt else ""
            directory = self.tickets_directory / ticket_dirname(
                ticket.name,
                ticket.created,
                nonce,
            )
            try:
                directory.mkdir(parents=True)
            except FileExistsError:
                logger.debug("Ticket directory %s is taken, retrying", directory)
                continue
            except OSError as e:
                msg = f"Failed to create ticket directory '{directory}': {e}"
                raise RuntimeError(msg) from e
            return directory

        msg = (
            f"Failed to create a ticket directory for '{ticket.name}' "
            f"after {MAX_DIRNAME_ATTEMPTS} attempts"
        )
        raise RuntimeError(msg)

    def _run_after_add_hook(self, directory: Path) -> None:
        """Run the configured post-create command (best-effort)."""
        if not self.after_add_ticket or not self.after_add_ticket.strip():
            return

        try:
            command = [*shlex.split(self.after_add_ticket), str(directory)]
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
            )
        except (OSError, ValueError) as e:
            logger.warning(
                "Post-create hook %r failed to start: %s",
                self.after_add_ticket,
                e,
            )
            return

        if result.returncode != 0:
            logger.warning(
                "Post-create hook %r exited with status %d: %s",
                command[0],
                result.returncode,
                result.stderr.strip(),
            )
