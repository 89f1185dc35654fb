"""DraftStore tests — tolerant decoding, handle/flag keys, failure wrapping.

Runs against the in-memory backend and the SQLite backend from
``onboarding_db.local_store`` (file under pytest's tmp_path).
"""

import json

import pytest

from onboarding_db.local_store import SqlKeyValueBackend
from onboarding_flow.constants import ATTACH_PENDING_KEY, DRAFT_KEY, SESSION_UUID_KEY
from onboarding_flow.draft_store import DraftStore, MemoryBackend
from onboarding_flow.errors import StorageFailure


class TestDraft:
    @pytest.mark.asyncio
    async def test_empty_store(self, store):
        assert await store.load() is None
        assert await store.get_session_handle() is None
        assert not await store.is_attach_pending()

    @pytest.mark.asyncio
    async def test_save_and_load(self, store):
        await store.save({"email": "a@b.c", "available_days": ["monday"]})
        record = await store.load()
        assert record.answers == {"email": "a@b.c", "available_days": ["monday"]}
        assert record.completed is False
        assert record.session_uuid is None

    @pytest.mark.asyncio
    async def test_last_write_wins(self, store):
        await store.save({"email": "a@b.c", "first_name": "Claire"})
        await store.save({"email": "z@b.c"})
        record = await store.load()
        assert record.answers == {"email": "z@b.c"}, "save must replace, not merge"

    @pytest.mark.asyncio
    async def test_handle_attached_to_loaded_draft(self, store):
        await store.set_session_handle("sess-9")
        await store.save({"email": "a@b.c"})
        assert (await store.load()).session_uuid == "sess-9"

    @pytest.mark.asyncio
    async def test_handle_not_embedded_in_draft_blob(self, store, backend):
        await store.set_session_handle("sess-9")
        await store.save({"email": "a@b.c"})
        assert "session_uuid" not in json.loads(backend.data[DRAFT_KEY])

    @pytest.mark.asyncio
    async def test_mark_completed(self, store):
        await store.save({"email": "a@b.c"})
        await store.mark_completed()
        record = await store.load()
        assert record.completed is True
        assert record.answers == {"email": "a@b.c"}

    @pytest.mark.asyncio
    async def test_mark_completed_without_draft_is_noop(self, store):
        await store.mark_completed()
        assert await store.load() is None


class TestTolerantDecoding:
    @pytest.mark.asyncio
    async def test_bare_answers_object(self):
        store = DraftStore(MemoryBackend({DRAFT_KEY: json.dumps({"email": "a@b.c"})}))
        record = await store.load()
        assert record.answers == {"email": "a@b.c"}

    @pytest.mark.asyncio
    async def test_unknown_fields_ignored(self):
        raw = json.dumps({"answers": {"email": "a@b.c"}, "schema": 7, "device": "ios"})
        store = DraftStore(MemoryBackend({DRAFT_KEY: raw}))
        assert (await store.load()).answers == {"email": "a@b.c"}

    @pytest.mark.asyncio
    async def test_missing_fields_defaulted(self):
        store = DraftStore(MemoryBackend({DRAFT_KEY: json.dumps({"completed": True})}))
        record = await store.load()
        assert record.answers == {}
        assert record.completed is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", "42"])
    async def test_undecodable_is_absent(self, raw):
        store = DraftStore(MemoryBackend({DRAFT_KEY: raw}))
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_invalid_record_keeps_answers(self):
        raw = json.dumps({"answers": {"email": "a@b.c"}, "updated_at": "yesterday"})
        store = DraftStore(MemoryBackend({DRAFT_KEY: raw}))
        assert (await store.load()).answers == {"email": "a@b.c"}

    @pytest.mark.asyncio
    async def test_blank_handle_is_absent(self):
        store = DraftStore(MemoryBackend({SESSION_UUID_KEY: "  "}))
        assert await store.get_session_handle() is None


class TestHandleAndAttachFlag:
    @pytest.mark.asyncio
    async def test_handle_round_trip_and_clear(self, store, backend):
        await store.set_session_handle("sess-1")
        assert await store.get_session_handle() == "sess-1"
        await store.set_session_handle(None)
        assert SESSION_UUID_KEY not in backend.data

    @pytest.mark.asyncio
    async def test_attach_pending(self, store, backend):
        await store.set_attach_pending(True)
        assert await store.is_attach_pending()
        await store.set_attach_pending(False)
        assert not await store.is_attach_pending()
        assert ATTACH_PENDING_KEY not in backend.data


class TestStorageFailure:
    @pytest.mark.asyncio
    async def test_write_failure_wrapped(self, store, backend):
        backend.fail_writes = True
        with pytest.raises(StorageFailure):
            await store.save({"email": "a@b.c"})
        with pytest.raises(StorageFailure):
            await store.set_session_handle(None)

    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self, store, backend):
        backend.fail_reads = True
        with pytest.raises(StorageFailure):
            await store.load()
        with pytest.raises(StorageFailure):
            await store.is_attach_pending()


class TestSqliteBackend:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'drafts.db'}"

        backend = SqlKeyValueBackend(url)
        await backend.init()
        store = DraftStore(backend)
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)
        await store.save({"email": "a@b.c"})
        await store.save({"email": "z@b.c"})
        await backend.dispose()

        reopened = SqlKeyValueBackend(url)
        await reopened.init()
        try:
            store = DraftStore(reopened)
            record = await store.load()
            assert record.answers == {"email": "z@b.c"}
            assert record.session_uuid == "sess-1"
            assert await store.is_attach_pending()

            await store.set_attach_pending(False)
            assert not await store.is_attach_pending()
        finally:
            await reopened.dispose()

    @pytest.mark.asyncio
    async def test_uninitialised_backend_raises_storage_failure(self, tmp_path):
        store = DraftStore(SqlKeyValueBackend(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}"))
        with pytest.raises(StorageFailure):
            await store.load()
