"""
Tests for formharvest.store.SessionStore.
"""
import pytest

from formharvest.store import SessionStore, StoreError

URL = "https://example.com/signup"


class TestAddSession:

    def test_assigns_ids_and_defaults(self, store, make_field):
        session = store.add_session(URL, [make_field("email", "a@b.co", "email")])
        assert session.id == 1
        assert session.synced is False
        assert session.duplicate is False
        assert session.timestamp.endswith("Z")
        assert store.count() == 1

    def test_empty_fields_rejected(self, store):
        with pytest.raises(ValueError):
            store.add_session(URL, [])
        assert store.count() == 0

    def test_fields_round_trip(self, store, make_field):
        fields = [make_field("name", "Asha Rao"), make_field("email", "a@b.co", "email")]
        stored = store.get(store.add_session(URL, fields).id)
        assert stored.fields == fields

    def test_duplicate_flag_decided_at_insert(self, store, make_field):
        first = store.add_session(URL, [make_field("email", "a@b.co", "email")])
        # not yet synced, so the repeat is not a duplicate
        second = store.add_session(URL, [make_field("email", "a@b.co", "email")])
        assert second.duplicate is False

        store.mark_synced(first.id)
        third = store.add_session(URL, [make_field("email", "a@b.co", "email")])
        assert third.duplicate is True
        assert third.synced is False
        assert store.get(third.id).duplicate is True

    def test_custom_duplicate_check(self, store, make_field):
        session = store.add_session(URL, [make_field("notes", "x")], duplicate_check=lambda *a: True)
        assert session.duplicate is True

    def test_failed_check_rolls_back(self, store, make_field):
        def broken(*args):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.add_session(URL, [make_field("notes", "x")], duplicate_check=broken)
        assert store.count() == 0


class TestListing:

    def test_newest_first(self, store, make_field):
        store.add_session(URL, [make_field("notes", "a")], timestamp="2024-01-01T00:00:00.000Z")
        store.add_session(URL, [make_field("notes", "b")], timestamp="2024-03-01T00:00:00.000Z")
        store.add_session(URL, [make_field("notes", "c")], timestamp="2024-02-01T00:00:00.000Z")
        assert [s.fields[0].value for s in store.list_sessions()] == ["b", "c", "a"]

    def test_same_timestamp_ordered_by_id(self, store, make_field):
        ts = "2024-01-01T00:00:00.000Z"
        ids = [store.add_session(URL, [make_field("notes", v)], timestamp=ts).id for v in "xyz"]
        assert [s.id for s in store.list_sessions()] == list(reversed(ids))

    def test_only_unsynced_excludes_synced_and_duplicates(self, store, make_field):
        synced = store.add_session(URL, [make_field("email", "a@b.co", "email")])
        store.mark_synced(synced.id)
        duplicate = store.add_session(URL, [make_field("email", "a@b.co", "email")])
        pending = store.add_session(URL, [make_field("email", "z@b.co", "email")])

        assert duplicate.duplicate is True
        assert [s.id for s in store.list_sessions(only_unsynced=True)] == [pending.id]
        assert [s.id for s in store.pending_sessions()] == [pending.id]
        assert len(store.list_sessions()) == 3

    def test_pending_in_insertion_order(self, store, make_field):
        ids = [store.add_session(URL, [make_field("notes", v)]).id for v in "abc"]
        assert [s.id for s in store.pending_sessions()] == ids
        assert [s.id for s in store.history()] == ids


class TestWrites:

    def test_mark_synced(self, store, make_field):
        session = store.add_session(URL, [make_field("notes", "a")])
        assert store.mark_synced(session.id) is True
        assert store.get(session.id).synced is True
        assert store.get(session.id).pending is False

    def test_mark_synced_unknown_id(self, store):
        assert store.mark_synced(999) is False

    def test_clear_all_resets_dedup_history(self, store, make_field):
        first = store.add_session(URL, [make_field("email", "a@b.co", "email")])
        store.mark_synced(first.id)
        assert store.clear_all() == 1
        assert store.count() == 0
        assert store.list_sessions() == []

        again = store.add_session(URL, [make_field("email", "a@b.co", "email")])
        assert again.duplicate is False


class TestPersistence:

    def test_survives_reopen(self, tmp_path, make_field):
        path = str(tmp_path / "nested" / "sessions.db")
        with SessionStore(path) as s:
            s.add_session(URL, [make_field("email", "a@b.co", "email")])

        with SessionStore(path) as s:
            sessions = s.list_sessions()
        assert len(sessions) == 1
        assert sessions[0].fields[0].value == "a@b.co"

    def test_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STORE_PATH", str(tmp_path / "env.db"))
        with SessionStore.from_settings() as s:
            assert s.db_path == str(tmp_path / "env.db")

    def test_closed_store_raises_store_error(self, make_field):
        s = SessionStore()
        s.close()
        with pytest.raises(StoreError):
            s.count()
