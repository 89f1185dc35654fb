"""onboarding_flow — Questionnaire flow & session synchronization SDK.

Public API:
    QuestionnaireDefinition — loads the YAML step definitions into typed models
    StepGraph               — pure next/previous resolver over the definition
    QuestionnaireRun        — one user's run: hydration, navigation, autosave
    DraftStore              — local persistence of draft, handle, attach flag
    SessionClient           — httpx client for the remote session API

Sync components:
    AutosaveCoordinator     — debounced remote sync with bounded retry
    AttachOrchestrator      — binds the anonymous session after login
    HydrationResolver       — picks the starting answer set
    AsyncioScheduler        — production timer seam
    ManualScheduler         — virtual-clock timer seam for tests

Collaborator interfaces:
    KeyValueBackend         — ABC for durable string storage
    AuthStateProvider       — ABC for the host application's auth state
"""

from onboarding_flow.attach import AttachOrchestrator, AttachOutcome
from onboarding_flow.autosave import AutosaveCoordinator, RetryPolicy
from onboarding_flow.client import SessionClient
from onboarding_flow.config import ClientSettings, load_settings
from onboarding_flow.definition import QuestionnaireDefinition
from onboarding_flow.draft_store import DraftStore, MemoryBackend
from onboarding_flow.errors import (
    AlreadyAttached,
    NetworkFailure,
    NotFound,
    ServerRejected,
    SessionSyncError,
    StorageFailure,
)
from onboarding_flow.graph import StepGraph, StepRef
from onboarding_flow.hydration import HydrationResolver, HydrationResult, HydrationSource
from onboarding_flow.interfaces import AuthStateProvider, KeyValueBackend
from onboarding_flow.models import (
    Boundary,
    BranchRule,
    DraftRecord,
    Predicate,
    Profile,
    Step,
    SyncState,
    SyncStatus,
)
from onboarding_flow.run import QuestionnaireRun
from onboarding_flow.scheduler import AsyncioScheduler, ManualScheduler, Scheduler

__all__ = [
    # Definition & graph
    "QuestionnaireDefinition",
    "StepGraph",
    "StepRef",
    "Boundary",
    "BranchRule",
    "Predicate",
    "Step",
    # Run
    "QuestionnaireRun",
    "ClientSettings",
    "load_settings",
    # Persistence & remote
    "DraftStore",
    "MemoryBackend",
    "DraftRecord",
    "Profile",
    "SessionClient",
    # Sync components
    "AutosaveCoordinator",
    "RetryPolicy",
    "SyncState",
    "SyncStatus",
    "AttachOrchestrator",
    "AttachOutcome",
    "HydrationResolver",
    "HydrationResult",
    "HydrationSource",
    "Scheduler",
    "AsyncioScheduler",
    "ManualScheduler",
    # Interfaces
    "KeyValueBackend",
    "AuthStateProvider",
    # Errors
    "SessionSyncError",
    "StorageFailure",
    "NetworkFailure",
    "ServerRejected",
    "AlreadyAttached",
    "NotFound",
]
