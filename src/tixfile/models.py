"""Data models for tixfile tickets using dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from tixfile._version import version as _tix_version
from tixfile.constants import ATTACHMENTS_DIRNAME
from tixfile.idgen import attachment_file_id, short_id_for


def _now() -> datetime:
    return datetime.now().astimezone()


class InvalidStatusError(ValueError):
    """Raised when a ticket is moved to a status outside the configured set."""


@dataclass(frozen=True)
class Comment:
    """A comment on a ticket."""

    text: str
    created: datetime = field(default_factory=_now)
    created_by: str | None = None


@dataclass(frozen=True)
class Attachment:
    """A file attached to a ticket.

    ``file_id`` names the subdirectory the payload is copied into. It is
    derived from the caption, the file name and the creation time, and is
    computed automatically when not given.
    """

    comment: str
    original_name: str
    created: datetime = field(default_factory=_now)
    created_by: str | None = None
    file_id: str = ""

    def __post_init__(self) -> None:
        # Only the basename of the source path is kept
        object.__setattr__(self, "original_name", Path(self.original_name).name)
        if not self.file_id:
            object.__setattr__(
                self,
                "file_id",
                attachment_file_id(self.comment, self.original_name, self.created),
            )

    def relative_path(self) -> Path:
        """Path of the payload relative to the ticket directory."""
        return Path(ATTACHMENTS_DIRNAME) / self.file_id / self.original_name


@dataclass
class Ticket:
    """A ticket in the tracking system.

    Comments and attachments live in side documents next to the record and
    are read on first access. Each list carries its own loaded flag, so a
    ticket without comments does not re-read the side document every time.
    """

    name: str
    description: str = ""
    status: str = ""
    severity: str = ""
    tags: list[str] = field(default_factory=list[str])
    modules: list[str] = field(default_factory=list[str])
    created: datetime = field(default_factory=_now)
    updated: datetime = field(default_factory=_now)
    created_by: str | None = None
    id: str | None = None  # Assigned on first save
    directory: Path | None = field(default=None, compare=False)

    _comments: list[Comment] = field(
        default_factory=list[Comment],
        init=False,
        repr=False,
        compare=False,
    )
    _comments_loaded: bool = field(default=False, init=False, repr=False, compare=False)
    _attachments: list[Attachment] = field(
        default_factory=list[Attachment],
        init=False,
        repr=False,
        compare=False,
    )
    _attachments_loaded: bool = field(
        default=False,
        init=False,
        repr=False,
        compare=False,
    )

    def __post_init__(self) -> None:
        self.name = self.name.replace("\r", "").replace("\n", "")

    def __str__(self) -> str:
        return f"{self.id} {self.name} {self.status}({self.severity})  {self.created}"

    @property
    def comments(self) -> list[Comment]:
        """Comments on this ticket, read from disk on first access."""
        if not self._comments_loaded:
            if self.directory is not None:
                from tixfile.storage import read_comments

                self._comments = read_comments(self.directory)
            self._comments_loaded = True
        return self._comments

    @property
    def attachments(self) -> list[Attachment]:
        """Attachments of this ticket, read from disk on first access."""
        if not self._attachments_loaded:
            if self.directory is not None:
                from tixfile.storage import read_attachments

                self._attachments = read_attachments(self.directory)
            self._attachments_loaded = True
        return self._attachments

    @property
    def comments_loaded(self) -> bool:
        return self._comments_loaded

    @property
    def attachments_loaded(self) -> bool:
        return self._attachments_loaded

    def is_saved(self) -> bool:
        """Check if the ticket has been assigned a storage directory."""
        return self.directory is not None

    def set_status(self, status: str, allowed: list[str]) -> None:
        """Move the ticket to ``status``.

        Raises:
            InvalidStatusError: If status is not one of ``allowed``. The
                ticket is left unchanged.
        """
        if status not in allowed:
            msg = f"Invalid status '{status}'. Valid statuses: {', '.join(allowed)}"
            raise InvalidStatusError(msg)
        self.status = status

    def add_comment(self, text: str, created_by: str | None = None) -> Comment:
        """Append a comment to the ticket and return it."""
        comment = Comment(text=text, created_by=created_by)
        self.comments.append(comment)
        return comment

    def add_attachment(self, attachment: Attachment) -> None:
        self.attachments.append(attachment)


def validate_ticket(ticket: Ticket) -> None:
    """Validate that a ticket can be persisted."""
    if not ticket.name or not ticket.name.strip():
        msg = "Ticket must have a non-empty name"
        raise ValueError(msg)


def ticket_to_dict(ticket: Ticket) -> dict[str, Any]:
    """Convert a Ticket's core fields to a dictionary, serializing datetimes."""
    return {
        "tix_version": _tix_version,
        "id": ticket.id,
        "name": ticket.name,
        "description": ticket.description,
        "status": ticket.status,
        "severity": ticket.severity,
        "tags": ticket.tags,
        "modules": ticket.modules,
        "created": ticket.created.isoformat(),
        "updated": ticket.updated.isoformat(),
        "created_by": ticket.created_by,
    }


def dict_to_ticket(data: dict[str, Any], directory: Path | None = None) -> Ticket:
    """Convert a dictionary to a Ticket, deserializing datetimes.

    Args:
        data: Record document contents
        directory: Storage directory of the ticket, if known. Used as the
            source of the short id for documents written without one.

    Raises:
        ValueError: If a required field is missing or malformed
    """
    try:
        created = datetime.fromisoformat(data["created"])
        updated = datetime.fromisoformat(data.get("updated") or data["created"])
        name = data["name"]
    except (KeyError, TypeError) as e:
        msg = f"Invalid ticket record: missing or malformed field {e}"
        raise ValueError(msg) from e

    ticket_id = data.get("id")
    if not ticket_id and directory is not None:
        ticket_id = short_id_for(directory.name)

    return Ticket(
        name=name,
        description=data.get("description") or "",
        status=data.get("status", ""),
        severity=data.get("severity", ""),
        tags=list(data.get("tags") or []),
        modules=list(data.get("modules") or []),
        created=created,
        updated=updated,
        created_by=data.get("created_by"),
        id=ticket_id,
        directory=directory,
    )


def comment_to_dict(comment: Comment) -> dict[str, Any]:
    return {
        "text": comment.text,
        "created": comment.created.isoformat(),
        "created_by": comment.created_by,
    }


def dict_to_comment(data: dict[str, Any]) -> Comment:
    return Comment(
        text=data["text"],
        created=datetime.fromisoformat(data["created"]),
        created_by=data.get("created_by"),
    )


def attachment_to_dict(attachment: Attachment) -> dict[str, Any]:
    return {
        "comment": attachment.comment,
        "original_name": attachment.original_name,
        "created": attachment.created.isoformat(),
        "created_by": attachment.created_by,
        "file_id": attachment.file_id,
    }


def dict_to_attachment(data: dict[str, Any]) -> Attachment:
    return Attachment(
        comment=data.get("comment", ""),
        original_name=data["original_name"],
        created=datetime.fromisoformat(data["created"]),
        created_by=data.get("created_by"),
        file_id=data.get("file_id", ""),
    )
