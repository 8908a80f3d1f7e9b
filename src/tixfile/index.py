"""In-memory ticket index mirrored from the tickets directory.

The index keeps every ticket in a single list and two lookup maps into it:
short id -> position, and directory name -> (position, mtime). A snapshot of
all three is stored in the cache directory so a later run only has to reload
the ticket directories whose modification time moved since the snapshot was
written.
"""

from __future__ import annotations

import fcntl
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tixfile.constants import (
    DEFAULT_STATUSES,
    RECORD_FILENAME,
    SNAPSHOT_FILENAME,
    SNAPSHOT_LOCK_FILENAME,
    SNAPSHOT_VERSION,
)
from tixfile.idgen import short_id_for
from tixfile.models import dict_to_ticket, ticket_to_dict
from tixfile.query import apply_query, parse_query
from tixfile.storage import TicketStore, read_document, write_document

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from tixfile.config import TixConfig
    from tixfile.models import Ticket

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Where a ticket directory lives in the index, and when it was read."""

    position: int
    mtime: int  # st_mtime_ns observed when the entry was (re)loaded


def observed_mtime(directory: Path) -> int:
    """Return the newest of the directory's and its record document's mtime.

    Document writes replace the file, which bumps the directory mtime, but a
    record edited in place by another tool only changes the file itself.
    """
    mtime = directory.stat().st_mtime_ns
    record = directory / RECORD_FILENAME
    try:
        mtime = max(mtime, record.stat().st_mtime_ns)
    except FileNotFoundError:
        pass
    return mtime


class TicketIndex:
    """Cached, reconciled view of all tickets under a tickets directory."""

    def __init__(
        self,
        tickets_directory: str | Path,
        cache_directory: str | Path,
        *,
        statuses: Iterable[str] = DEFAULT_STATUSES,
        store: TicketStore | None = None,
    ) -> None:
        """Build the index and reconcile it with the tickets directory.

        If either directory is missing and cannot be created, the index is
        left uninitialized: ``ready`` is False and every query returns an
        empty result.

        Args:
            tickets_directory: Directory with one subdirectory per ticket
            cache_directory: Directory holding the index snapshot
            statuses: Status values recognized as listing filters
            store: Store used to load ticket directories
        """
        self.tickets_directory = Path(tickets_directory)
        self.cache_directory = Path(cache_directory)
        self.statuses = list(statuses)
        self.store = store or TicketStore(self.tickets_directory)
        self._snapshot_path = self.cache_directory / SNAPSHOT_FILENAME
        self._lock_path = self.cache_directory / SNAPSHOT_LOCK_FILENAME

        self._tickets: list[Ticket] = []
        self._by_id: dict[str, int] = {}
        self._by_dir: dict[str, CacheEntry] = {}
        self._dirty = False
        self._ready = False

        try:
            self.tickets_directory.mkdir(parents=True, exist_ok=True)
            self.cache_directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Ticket index not initialized: %s", e)
            return

        self._ready = True
        self.reconcile()

    @classmethod
    def from_config(cls, config: TixConfig) -> TicketIndex:
        """Build an index (and its store) from a loaded configuration."""
        store = TicketStore(config.tickets_directory, config.after_add_ticket)
        return cls(
            config.tickets_directory,
            config.cache_directory,
            statuses=config.statuses,
            store=store,
        )

    @property
    def ready(self) -> bool:
        """Whether the index could be initialized."""
        return self._ready

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def tickets(self) -> list[Ticket]:
        """A copy of the cached tickets, in index order."""
        return list(self._tickets)

    def __len__(self) -> int:
        return len(self._tickets)

    def entry_for(self, directory_name: str) -> CacheEntry | None:
        """Return the cache entry of a ticket directory, if indexed."""
        return self._by_dir.get(directory_name)

    def position_of(self, ticket_id: str) -> int | None:
        """Return the list position of a short id, if indexed."""
        return self._by_id.get(ticket_id)

    # -- Locking and snapshot persistence ----------------------------------

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        """Acquire an advisory file lock around snapshot read/write."""
        lock_fd = self._lock_path.open("w")
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(lock_fd, fcntl.LOCK_UN)
            lock_fd.close()

    def _reset(self) -> None:
        self._tickets = []
        self._by_id = {}
        self._by_dir = {}

    def _load_snapshot(self) -> None:
        """Replace in-memory state with the persisted snapshot, if any.

        An undecodable or internally inconsistent snapshot is discarded and
        the index is rebuilt from the tickets directory.
        """
        self._reset()
        self._dirty = False
        if not self._snapshot_path.exists():
            return

        try:
            data = read_document(self._snapshot_path)
            tickets, by_id, by_dir = self._decode_snapshot(data)
        except ValueError as e:
            logger.warning(
                "Discarding unreadable index snapshot %s: %s",
                self._snapshot_path,
                e,
            )
            self._dirty = True
            return

        self._tickets = tickets
        self._by_id = by_id
        self._by_dir = by_dir
        logger.debug("Loaded %d tickets from index snapshot", len(tickets))

    def _decode_snapshot(
        self,
        data: Any,
    ) -> tuple[list[Ticket], dict[str, int], dict[str, CacheEntry]]:
        """Decode and validate a snapshot document."""
        if not isinstance(data, dict) or data.get("version") != SNAPSHOT_VERSION:
            msg = "unsupported snapshot version"
            raise ValueError(msg)

        try:
            records = data["records"]
            names = [item["directory"] for item in records]
            tickets = [
                dict_to_ticket(item["record"], directory=self.tickets_directory / name)
                for item, name in zip(records, names, strict=True)
            ]
            by_dir = {
                str(name): CacheEntry(int(info["position"]), int(info["mtime"]))
                for name, info in data["name_index"].items()
            }
            by_id = {str(k): int(v) for k, v in data["id_index"].items()}
        except (KeyError, TypeError, AttributeError) as e:
            msg = f"malformed snapshot: {e!r}"
            raise ValueError(msg) from e

        if sorted(e.position for e in by_dir.values()) != list(range(len(tickets))):
            msg = "snapshot positions do not match its records"
            raise ValueError(msg)
        for name, entry in by_dir.items():
            if names[entry.position] != name:
                msg = f"snapshot entry for {name} points at the wrong record"
                raise ValueError(msg)
        if any(not 0 <= pos < len(tickets) for pos in by_id.values()):
            msg = "snapshot id index points outside its records"
            raise ValueError(msg)

        return tickets, by_id, by_dir

    def _save_snapshot(self) -> None:
        """Write the full in-memory state to the snapshot file."""
        names = [""] * len(self._tickets)
        for name, entry in self._by_dir.items():
            names[entry.position] = name

        data = {
            "version": SNAPSHOT_VERSION,
            "records": [
                {"directory": name, "record": ticket_to_dict(ticket)}
                for name, ticket in zip(names, self._tickets, strict=True)
            ],
            "id_index": self._by_id,
            "name_index": {
                name: {"position": entry.position, "mtime": entry.mtime}
                for name, entry in self._by_dir.items()
            },
        }
        write_document(self._snapshot_path, data)
        self._dirty = False
        logger.debug("Saved index snapshot with %d tickets", len(self._tickets))

    def _persist(self) -> None:
        """Save the snapshot if anything changed."""
        if not self._dirty:
            return
        with self._file_lock():
            self._save_snapshot()

    # -- Reconciliation ----------------------------------------------------

    def _scan(self) -> dict[str, Path]:
        """List the ticket directories currently on disk."""
        if not self.tickets_directory.is_dir():
            return {}
        return {
            path.name: path
            for path in sorted(self.tickets_directory.iterdir())
            if path.is_dir()
        }

    def _index_id(self, ticket: Ticket, directory_name: str, position: int) -> None:
        ticket_id = ticket.id or short_id_for(directory_name)
        existing = self._by_id.get(ticket_id)
        if existing is not None and existing != position:
            logger.warning(
                "Short id %s is shared by several tickets; lookups see %s",
                ticket_id,
                directory_name,
            )
        self._by_id[ticket_id] = position

    def _rebuild_positions(self) -> None:
        """Reassign dense positions from the surviving directory entries.

        Positions are rebuilt in one pass over the survivors in their
        current order instead of being shifted in place.
        """
        survivors = sorted(self._by_dir.items(), key=lambda item: item[1].position)
        tickets = [self._tickets[entry.position] for _, entry in survivors]

        self._tickets = tickets
        self._by_dir = {}
        self._by_id = {}
        for position, (name, entry) in enumerate(survivors):
            self._by_dir[name] = CacheEntry(position, entry.mtime)
            self._index_id(tickets[position], name, position)

    def _drop_missing(self, live: dict[str, Path]) -> None:
        """Forget tickets whose directory no longer exists."""
        removed = [name for name in self._by_dir if name not in live]
        if not removed:
            return
        for name in removed:
            del self._by_dir[name]
            logger.debug("Ticket directory %s disappeared; dropping it", name)
        self._rebuild_positions()
        self._dirty = True

    def _load_ticket(self, directory: Path) -> Ticket | None:
        if not (directory / RECORD_FILENAME).is_file():
            logger.warning(
                "Skipping %s: no %s in directory",
                directory,
                RECORD_FILENAME,
            )
            return None
        return self.store.load(directory)

    def _merge_live(self, live: dict[str, Path]) -> None:
        """Load new ticket directories and reload modified ones."""
        for name, directory in live.items():
            mtime = observed_mtime(directory)
            entry = self._by_dir.get(name)

            if entry is None:
                ticket = self._load_ticket(directory)
                if ticket is None:
                    continue
                position = len(self._tickets)
                self._tickets.append(ticket)
                self._by_dir[name] = CacheEntry(position, mtime)
                self._index_id(ticket, name, position)
                self._dirty = True
                logger.debug("Indexed new ticket %s", name)

            elif mtime > entry.mtime:
                ticket = self._load_ticket(directory)
                if ticket is None:
                    continue
                self._tickets[entry.position] = ticket
                entry.mtime = mtime
                self._index_id(ticket, name, entry.position)
                self._dirty = True
                logger.debug("Reloaded modified ticket %s", name)

    def reconcile(self) -> None:
        """Bring the index in line with the tickets directory.

        Reloads the snapshot, drops tickets whose directory vanished, loads
        new directories, reloads directories with a newer mtime, and writes
        the snapshot back if anything changed.
        """
        if not self._ready:
            return
        with self._file_lock():
            self._load_snapshot()
            live = self._scan()
            self._drop_missing(live)
            self._merge_live(live)
            if self._dirty:
                self._save_snapshot()

    def refresh(self, ticket: Ticket) -> None:
        """Update the cache entry of a ticket the caller just saved.

        Known tickets are replaced in place without rescanning the tickets
        directory. Unknown tickets, and tickets whose id slot belongs to
        another directory, trigger a full reconcile.
        """
        if not self._ready:
            return

        position = self._by_id.get(ticket.id) if ticket.id else None
        entry = (
            self._by_dir.get(ticket.directory.name)
            if ticket.directory is not None
            else None
        )
        if position is None or entry is None or entry.position != position:
            self.reconcile()
            return

        self._tickets[position] = ticket
        try:
            entry.mtime = observed_mtime(ticket.directory)
        except OSError as e:
            logger.debug("Could not stat %s: %s", ticket.directory, e)
        self._dirty = True
        self._persist()

    # -- Queries -----------------------------------------------------------

    def enumerate(self, tokens: Iterable[str] = ()) -> Iterator[Ticket]:
        """Iterate over tickets filtered and sorted by listing tokens.

        The result is computed from a copy of the index, so it is safe to
        mutate the index while iterating.

        Raises:
            ValueError: If a sort directive names an unsortable field
        """
        if not self._ready:
            return iter(())
        query = parse_query(tokens, self.statuses)
        return iter(apply_query(query, list(self._tickets)))

    def resolve(self, partial_id: str, *, for_update: bool = False) -> list[Ticket]:
        """Find tickets by full or partial short id.

        An exact id match returns just that ticket. Otherwise every ticket
        whose id starts with ``partial_id`` is returned, in no particular
        order.

        Args:
            partial_id: Full or leading part of a short id
            for_update: Mark the index dirty and persist it when anything
                matched, for callers about to modify the matches

        Returns:
            Matching tickets; empty if nothing matched
        """
        if not self._ready or not partial_id:
            return []

        position = self._by_id.get(partial_id)
        if position is not None:
            matches = [self._tickets[position]]
        else:
            matches = [
                self._tickets[pos]
                for ticket_id, pos in self._by_id.items()
                if ticket_id.startswith(partial_id)
            ]

        if matches and for_update:
            self._dirty = True
            self._persist()
        return matches
