"""AttachOrchestrator tests — outcomes, pending flag handling, deduplication."""

import asyncio

import pytest

from onboarding_flow.attach import AttachOrchestrator, AttachOutcome
from onboarding_flow.errors import (
    AlreadyAttached,
    NetworkFailure,
    NotFound,
    ServerRejected,
)

from helpers.fakes import settle


@pytest.fixture
def orchestrator(store, client):
    return AttachOrchestrator(store, client)


class TestOutcomes:
    @pytest.mark.asyncio
    async def test_no_handle_skips_without_network(self, orchestrator, client):
        assert await orchestrator.on_authenticated() == AttachOutcome.SKIPPED
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_not_pending_skips_without_network(self, orchestrator, store, client):
        await store.set_session_handle("sess-1")
        assert await orchestrator.on_authenticated() == AttachOutcome.SKIPPED
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_attached(self, orchestrator, store, client):
        client.sessions["sess-1"] = {"email": "a@b.c"}
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)

        assert await orchestrator.on_authenticated() == AttachOutcome.ATTACHED
        assert not await store.is_attach_pending()
        assert await store.get_session_handle() == "sess-1", "handle is kept after attach"
        assert orchestrator.profile.questionnaire_completed

    @pytest.mark.asyncio
    async def test_already_attached_counts_as_success(self, orchestrator, store, client):
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)
        client.attach_errors = [AlreadyAttached("Session already attached")]

        assert await orchestrator.on_authenticated() == AttachOutcome.ALREADY_ATTACHED
        assert not await store.is_attach_pending()

    @pytest.mark.asyncio
    async def test_expired_session_clears_pending(self, orchestrator, store, client):
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)
        client.attach_errors = [NotFound("gone")]

        assert await orchestrator.on_authenticated() == AttachOutcome.EXPIRED
        assert not await store.is_attach_pending()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        NetworkFailure("offline"),
        ServerRejected(422, "Questionnaire incomplete"),
    ])
    async def test_failure_keeps_pending(self, orchestrator, store, client, error):
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)
        client.attach_errors = [error]

        assert await orchestrator.on_authenticated() == AttachOutcome.FAILED
        assert await store.is_attach_pending(), "next login must retry"

    @pytest.mark.asyncio
    async def test_storage_failure_reported(self, orchestrator, backend, client):
        backend.fail_reads = True
        assert await orchestrator.on_authenticated() == AttachOutcome.FAILED
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_pending_clear_failure_keeps_retrying(self, orchestrator, store, backend, client):
        client.sessions["sess-1"] = {}
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)
        backend.fail_writes = True

        assert await orchestrator.on_authenticated() == AttachOutcome.FAILED
        backend.fail_writes = False
        assert await store.is_attach_pending()


class TestDeduplication:
    @pytest.mark.asyncio
    async def test_second_login_after_success_makes_no_calls(self, orchestrator, store, client):
        client.sessions["sess-1"] = {}
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)

        assert await orchestrator.on_authenticated("login-1") == AttachOutcome.ATTACHED
        calls_before = list(client.calls)

        assert await orchestrator.on_authenticated("login-2") == AttachOutcome.SKIPPED
        assert await AttachOrchestrator(store, client).on_authenticated() == AttachOutcome.SKIPPED
        assert client.calls == calls_before

    @pytest.mark.asyncio
    async def test_repeated_event_is_noop(self, orchestrator, store, client):
        client.sessions["sess-1"] = {}
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)
        client.attach_errors = [NetworkFailure("offline")]

        assert await orchestrator.on_authenticated("login-1") == AttachOutcome.FAILED
        assert await orchestrator.on_authenticated("login-1") == AttachOutcome.SKIPPED
        assert len(client.calls_of("attach")) == 1

        assert await orchestrator.on_authenticated("login-2") == AttachOutcome.ATTACHED

    @pytest.mark.asyncio
    async def test_concurrent_invocation_is_noop(self, orchestrator, store, client):
        client.sessions["sess-1"] = {}
        await store.set_session_handle("sess-1")
        await store.set_attach_pending(True)
        client.attach_gate = asyncio.Event()

        first = asyncio.ensure_future(orchestrator.on_authenticated("login-1"))
        await settle()
        assert await orchestrator.on_authenticated("login-2") == AttachOutcome.SKIPPED

        client.attach_gate.set()
        assert await first == AttachOutcome.ATTACHED
        assert len(client.calls_of("attach")) == 1
