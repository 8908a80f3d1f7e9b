"""Tests for the reconciled ticket index."""

import logging
import shutil
from pathlib import Path

import orjson
import pytest
from conftest import build_index, make_record_dir, make_ticket, touch_later

from tixfile.index import TicketIndex, observed_mtime
from tixfile.models import ticket_to_dict
from tixfile.storage import TicketStore, read_document, write_document


def _positions(index: TicketIndex) -> dict[str, int]:
    return {
        ticket.directory.name: index.entry_for(ticket.directory.name).position
        for ticket in index.tickets
        if ticket.directory is not None
    }


class TestReconcile:
    """Test reconciliation against the tickets directory."""

    def test_empty_directory(self, tickets_dir: Path, cache_dir: Path) -> None:
        """Test that an empty tickets directory gives an empty index."""
        index = build_index(tickets_dir, cache_dir)
        assert index.ready
        assert len(index) == 0
        assert list(index.enumerate()) == []

    def test_creates_missing_directories(self, tmp_path: Path) -> None:
        """Test that both directories are created on demand."""
        index = build_index(tmp_path / "t", tmp_path / "c")
        assert index.ready
        assert (tmp_path / "t").is_dir()
        assert (tmp_path / "c").is_dir()

    def test_snapshot_written(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that a reconcile with changes writes the snapshot."""
        store.save(make_ticket("One"))
        index = build_index(tickets_dir, cache_dir)
        assert not index.dirty
        data = read_document(cache_dir / "index.json")
        assert data["version"] == 1
        assert len(data["records"]) == 1

    def test_convergence_after_touch(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that touched directories are reloaded and others kept."""
        tickets = [make_ticket(f"Ticket {i}") for i in range(5)]
        for ticket in tickets:
            store.save(ticket)
        build_index(tickets_dir, cache_dir)

        for ticket in tickets[:2]:
            assert ticket.directory is not None
            data = read_document(ticket.directory / "record.json")
            data["name"] = f"{data['name']} (edited)"
            write_document(ticket.directory / "record.json", data)
            touch_later(ticket.directory)

        index = build_index(tickets_dir, cache_dir)
        assert len(index) == 5

        on_disk = {p.name for p in tickets_dir.iterdir()}
        assert set(_positions(index)) == on_disk

        for cached in index.tickets:
            assert cached.directory is not None
            assert cached == store.load(cached.directory)
        edited = [t for t in index.tickets if t.name.endswith("(edited)")]
        assert len(edited) == 2

    def test_entry_mtime_matches_disk(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that a reloaded entry records the newer mtime."""
        ticket = make_ticket("Clock")
        store.save(ticket)
        assert ticket.directory is not None
        build_index(tickets_dir, cache_dir)

        touch_later(ticket.directory)
        index = build_index(tickets_dir, cache_dir)
        entry = index.entry_for(ticket.directory.name)
        assert entry is not None
        assert entry.mtime == observed_mtime(ticket.directory)

    def test_warm_start_loads_nothing(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that unchanged directories are served from the snapshot."""
        for name in ("A", "B", "C"):
            store.save(make_ticket(name))
        build_index(tickets_dir, cache_dir)

        cold = TicketStore(tickets_dir)

        def fail_load(directory: Path) -> None:
            pytest.fail(f"unexpected load of {directory}")

        monkeypatch.setattr(cold, "load", fail_load)
        index = build_index(tickets_dir, cache_dir, store=cold)
        assert len(index) == 3
        assert sorted(t.name for t in index.tickets) == ["A", "B", "C"]

    def test_removal(self, tickets_dir: Path, cache_dir: Path) -> None:
        """Test that a deleted directory leaves no dangling references."""
        make_record_dir(tickets_dir, "a1b2c3d4-first.record", name="First")
        second = make_record_dir(tickets_dir, "e5f6a7b8-second.record", name="Second")
        index = build_index(tickets_dir, cache_dir)
        assert len(index) == 2

        shutil.rmtree(second)
        index.reconcile()

        assert len(index) == 1
        assert index.resolve("e5f6a7b8") == []
        assert [t.name for t in index.resolve("a1b2c3d4")] == ["First"]
        assert index.position_of("e5f6a7b8") is None
        assert index.entry_for("e5f6a7b8-second.record") is None
        assert index.position_of("a1b2c3d4") == 0

    def test_removal_reindexes_positions(
        self,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that positions stay dense after removing from the middle."""
        for prefix in ("11111111", "22222222", "33333333", "44444444"):
            make_record_dir(tickets_dir, f"{prefix}-t.record", name=prefix)
        index = build_index(tickets_dir, cache_dir)

        shutil.rmtree(tickets_dir / "22222222-t.record")
        shutil.rmtree(tickets_dir / "33333333-t.record")
        index.reconcile()

        assert [t.name for t in index.tickets] == ["11111111", "44444444"]
        assert index.position_of("44444444") == 1
        assert sorted(_positions(index).values()) == [0, 1]

        reopened = build_index(tickets_dir, cache_dir)
        assert [t.id for t in reopened.tickets] == ["11111111", "44444444"]

    def test_directory_without_record_is_skipped(
        self,
        tickets_dir: Path,
        cache_dir: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that half-created directories are skipped with a warning."""
        make_record_dir(tickets_dir, "a1b2c3d4-ok.record", name="Ok")
        (tickets_dir / "deadbeef-partial.record").mkdir()

        with caplog.at_level(logging.WARNING, logger="tixfile.index"):
            index = build_index(tickets_dir, cache_dir)

        assert [t.name for t in index.tickets] == ["Ok"]
        assert "no record.json" in caplog.text

    def test_stray_files_ignored(self, tickets_dir: Path, cache_dir: Path) -> None:
        """Test that plain files in the tickets directory are not tickets."""
        (tickets_dir / "README").write_text("not a ticket")
        make_record_dir(tickets_dir, "a1b2c3d4-ok.record", name="Ok")
        index = build_index(tickets_dir, cache_dir)
        assert len(index) == 1

    def test_short_id_collision_warns(
        self,
        tickets_dir: Path,
        cache_dir: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that two directories with the same short id are reported."""
        make_record_dir(tickets_dir, "a1b2c3d4-one.record", name="One")
        make_record_dir(tickets_dir, "a1b2c3d4-two.record", name="Two")
        with caplog.at_level(logging.WARNING, logger="tixfile.index"):
            index = build_index(tickets_dir, cache_dir)
        assert len(index) == 2
        assert "shared by several tickets" in caplog.text


class TestSnapshotRecovery:
    """Test handling of damaged snapshots."""

    def test_corrupt_snapshot_is_rebuilt(
        self,
        tickets_dir: Path,
        cache_dir: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that an undecodable snapshot is discarded and rewritten."""
        make_record_dir(tickets_dir, "a1b2c3d4-ok.record", name="Ok")
        cache_dir.mkdir()
        (cache_dir / "index.json").write_text("{{{ nope")

        with caplog.at_level(logging.WARNING, logger="tixfile.index"):
            index = build_index(tickets_dir, cache_dir)

        assert [t.name for t in index.tickets] == ["Ok"]
        assert "Discarding unreadable index snapshot" in caplog.text
        assert read_document(cache_dir / "index.json")["version"] == 1

    def test_inconsistent_snapshot_is_rebuilt(
        self,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that a snapshot whose maps disagree with its records is discarded."""
        make_record_dir(tickets_dir, "a1b2c3d4-ok.record", name="Ok")
        cache_dir.mkdir()
        record = ticket_to_dict(make_ticket("Ghost"))
        bad = {
            "version": 1,
            "records": [{"directory": "a1b2c3d4-ok.record", "record": record}],
            "id_index": {"a1b2c3d4": 0},
            "name_index": {"a1b2c3d4-ok.record": {"position": 3, "mtime": 0}},
        }
        (cache_dir / "index.json").write_bytes(orjson.dumps(bad))

        index = build_index(tickets_dir, cache_dir)
        assert [t.name for t in index.tickets] == ["Ok"]

    def test_unknown_version_is_rebuilt(
        self,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that snapshots from another format version are ignored."""
        make_record_dir(tickets_dir, "a1b2c3d4-ok.record", name="Ok")
        cache_dir.mkdir()
        (cache_dir / "index.json").write_bytes(orjson.dumps({"version": 99}))
        index = build_index(tickets_dir, cache_dir)
        assert len(index) == 1


class TestResolve:
    """Test short id resolution."""

    @pytest.fixture
    def index(self, tickets_dir: Path, cache_dir: Path) -> TicketIndex:
        make_record_dir(tickets_dir, "a1b2c3d4-one.record", name="One")
        make_record_dir(tickets_dir, "a1b2ffff-two.record", name="Two")
        make_record_dir(tickets_dir, "e5f6a7b8-three.record", name="Three")
        return build_index(tickets_dir, cache_dir)

    def test_exact_match(self, index: TicketIndex) -> None:
        """Test that a full id yields exactly that ticket."""
        assert [t.name for t in index.resolve("e5f6a7b8")] == ["Three"]

    def test_unique_prefix(self, index: TicketIndex) -> None:
        """Test that a unique prefix yields one ticket."""
        assert [t.name for t in index.resolve("a1b2c")] == ["One"]

    def test_shared_prefix_yields_all(self, index: TicketIndex) -> None:
        """Test that an ambiguous prefix yields every match."""
        assert sorted(t.name for t in index.resolve("a1b2")) == ["One", "Two"]

    def test_no_match(self, index: TicketIndex) -> None:
        """Test that unknown ids give an empty result."""
        assert index.resolve("ffff") == []

    def test_empty_partial(self, index: TicketIndex) -> None:
        """Test that an empty id matches nothing."""
        assert index.resolve("") == []

    def test_read_only_resolve_does_not_write(
        self,
        index: TicketIndex,
        cache_dir: Path,
    ) -> None:
        """Test that a plain lookup never rewrites the snapshot."""
        (cache_dir / "index.json").unlink()
        assert index.resolve("a1b2c3d4")
        assert not index.dirty
        assert not (cache_dir / "index.json").exists()

    def test_resolve_for_update_persists(
        self,
        index: TicketIndex,
        cache_dir: Path,
    ) -> None:
        """Test that an update lookup with matches rewrites the snapshot."""
        (cache_dir / "index.json").unlink()
        assert index.resolve("a1b2c3d4", for_update=True)
        assert not index.dirty
        assert (cache_dir / "index.json").exists()

    def test_resolve_for_update_without_match(
        self,
        index: TicketIndex,
        cache_dir: Path,
    ) -> None:
        """Test that an update lookup with no matches writes nothing."""
        (cache_dir / "index.json").unlink()
        assert index.resolve("ffff", for_update=True) == []
        assert not (cache_dir / "index.json").exists()


class TestRefresh:
    """Test the single-ticket refresh path."""

    def test_refresh_replaces_in_place(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that a known ticket is updated without changing positions."""
        for name in ("A", "B", "C"):
            store.save(make_ticket(name))
        index = build_index(tickets_dir, cache_dir)
        before = _positions(index)

        ticket = index.resolve(index.tickets[1].id or "", for_update=True)[0]
        ticket.set_status("closed", index.statuses)
        store.save(ticket)
        index.refresh(ticket)

        assert _positions(index) == before
        assert index.tickets[1].status == "closed"
        reopened = build_index(tickets_dir, cache_dir)
        assert reopened.tickets[1].status == "closed"

    def test_refresh_is_idempotent(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that refreshing twice changes nothing the second time."""
        ticket = make_ticket("Once")
        store.save(ticket)
        store.save(make_ticket("Twice"))
        index = build_index(tickets_dir, cache_dir)

        index.refresh(ticket)
        first = (index.tickets, _positions(index))
        index.refresh(ticket)
        assert (index.tickets, _positions(index)) == first
        assert len(index) == 2

    def test_refresh_unknown_ticket_reconciles(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that a ticket missing from the index triggers a reconcile."""
        index = build_index(tickets_dir, cache_dir, store=store)
        ticket = make_ticket("Late")
        store.save(ticket)

        index.refresh(ticket)
        assert [t.id for t in index.tickets] == [ticket.id]

    def test_refresh_with_shared_id_keeps_other_slot(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that refreshing one of two tickets sharing an id keeps the other."""
        one = make_record_dir(tickets_dir, "a1b2c3d4-one.record", name="One")
        make_record_dir(tickets_dir, "a1b2c3d4-two.record", name="Two")
        index = build_index(tickets_dir, cache_dir, store=store)
        two_entry = index.entry_for("a1b2c3d4-two.record")
        assert two_entry is not None
        assert index.position_of("a1b2c3d4") == two_entry.position

        ticket = store.load(one)
        ticket.name = "One edited"
        store.save(ticket)
        touch_later(one)
        index.refresh(ticket)

        names = {t.directory.name: t.name for t in index.tickets if t.directory}
        assert names == {
            "a1b2c3d4-one.record": "One edited",
            "a1b2c3d4-two.record": "Two",
        }
        assert len(index) == 2

    def test_refreshed_entry_is_not_reloaded(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that refresh records the mtime so the next run skips the load."""
        ticket = make_ticket("Fresh")
        store.save(ticket)
        index = build_index(tickets_dir, cache_dir, store=store)
        ticket.add_comment("new comment")
        store.save(ticket)
        index.refresh(ticket)

        cold = TicketStore(tickets_dir)

        def fail_load(directory: Path) -> None:
            pytest.fail(f"unexpected load of {directory}")

        monkeypatch.setattr(cold, "load", fail_load)
        build_index(tickets_dir, cache_dir, store=cold)


class TestEnumerate:
    """Test filtered and sorted listings."""

    def test_filter_and_sort(self, store: TicketStore, tickets_dir: Path, cache_dir: Path) -> None:
        """Test status filtering with an ascending severity sort."""
        store.save(make_ticket("A", status="opened", severity="critical"))
        store.save(make_ticket("B", status="closed", severity="normal"))
        store.save(make_ticket("C", status="opened", severity="minor"))
        index = build_index(tickets_dir, cache_dir)

        result = list(index.enumerate(["opened", "+severity"]))
        assert [t.severity for t in result] == ["critical", "minor"]
        assert {t.status for t in result} == {"opened"}

    def test_no_tokens_lists_everything(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that an empty query lists all tickets in index order."""
        for name in ("A", "B"):
            store.save(make_ticket(name))
        index = build_index(tickets_dir, cache_dir)
        assert [t.name for t in index.enumerate()] == [t.name for t in index.tickets]

    def test_enumerate_is_snapshot(
        self,
        store: TicketStore,
        tickets_dir: Path,
        cache_dir: Path,
    ) -> None:
        """Test that reconciling during iteration does not disturb it."""
        store.save(make_ticket("A"))
        store.save(make_ticket("B"))
        index = build_index(tickets_dir, cache_dir, store=store)

        seen = []
        for ticket in index.enumerate():
            seen.append(ticket.name)
            store.save(make_ticket(f"{ticket.name} copy"))
            index.reconcile()

        assert sorted(seen) == ["A", "B"]
        assert len(index) == 4

    def test_unsortable_field(self, tickets_dir: Path, cache_dir: Path) -> None:
        """Test that sorting by an unknown field is an error."""
        index = build_index(tickets_dir, cache_dir)
        with pytest.raises(ValueError, match="Cannot sort by 'color'"):
            list(index.enumerate(["+color"]))


class TestUninitialized:
    """Test degraded behaviour when the directories cannot be created."""

    @pytest.fixture
    def index(self, tmp_path: Path) -> TicketIndex:
        blocker = tmp_path / "file"
        blocker.write_text("")
        return build_index(blocker / "tickets", blocker / "cache")

    def test_not_ready(self, index: TicketIndex) -> None:
        """Test that the index reports itself uninitialized."""
        assert not index.ready
        assert len(index) == 0

    def test_queries_are_empty(self, index: TicketIndex) -> None:
        """Test that every query degrades to an empty result."""
        assert list(index.enumerate(["opened"])) == []
        assert index.resolve("a1b2") == []

    def test_refresh_is_noop(self, index: TicketIndex) -> None:
        """Test that refresh does nothing on an uninitialized index."""
        index.refresh(make_ticket("x", id="a1b2c3d4"))
        assert len(index) == 0
