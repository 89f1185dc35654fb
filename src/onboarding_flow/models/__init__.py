"""Public model re-exports for onboarding_flow.

Consumers should import from ``onboarding_flow.models`` rather than
reaching into sub-modules directly.
"""

# --- Steps ---
from onboarding_flow.models.step import (
    Boundary,
    BranchRule,
    Option,
    Predicate,
    Step,
    WheelConfig,
)

# --- Drafts / sync ---
from onboarding_flow.models.draft import (
    DraftRecord,
    Profile,
    SyncState,
    SyncStatus,
)

__all__ = [
    # Steps
    "Boundary",
    "BranchRule",
    "Option",
    "Predicate",
    "Step",
    "WheelConfig",
    # Drafts / sync
    "DraftRecord",
    "Profile",
    "SyncState",
    "SyncStatus",
]
