"""Shared constants and enums used across the application."""

from enum import StrEnum


class EntityKind(StrEnum):
    """Pipeline entity families tracked by the engine."""

    LEAD = "lead"
    VC = "vc"


class EntityStatus(StrEnum):
    """Overall status of a Lead / VC."""

    IN_PROGRESS = "in-progress"
    WON = "won"
    LOST = "lost"
    COMPLETED = "completed"


class StepStatus(StrEnum):
    """Lifecycle status of a single step instance."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STEP_STATUSES: frozenset[str] = frozenset({StepStatus.COMPLETED, StepStatus.CANCELLED})

# current status -> statuses it may move to (same-status updates are always allowed)
STEP_TRANSITIONS: dict[str, frozenset[str]] = {
    StepStatus.PENDING: frozenset({StepStatus.IN_PROGRESS, StepStatus.COMPLETED, StepStatus.CANCELLED}),
    StepStatus.IN_PROGRESS: frozenset({StepStatus.PENDING, StepStatus.COMPLETED, StepStatus.CANCELLED}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.CANCELLED: frozenset(),
}


class DataSource(StrEnum):
    """Where an operation's result came from."""

    STORE = "store"
    FALLBACK = "fallback"


# ─── Probability bounds ───────────────────────
MIN_PROBABILITY = 0
MAX_PROBABILITY = 100

# Offset used by the two-phase reorder to park rows outside the live order space.
REORDER_PARKING_OFFSET = 1000

# Fresh transactions tried when a concurrent create takes the same display code.
CREATE_ENTITY_ATTEMPTS = 5

DEFAULT_TEMPLATE_STEP_DAYS = 3


# ─── Default step sequence ────────────────────
# Used when an entity has no template, or its template has no steps.
DEFAULT_STEPS: tuple[dict[str, object], ...] = (
    {"name": "Initial Contact & Discovery", "description": "First contact with prospect to understand their needs", "estimated_days": 1},
    {"name": "Needs Assessment & Demo", "description": "Detailed needs assessment and product demonstration", "estimated_days": 3},
    {"name": "Proposal Preparation", "description": "Prepare detailed proposal based on requirements", "estimated_days": 4},
    {"name": "Proposal Review & Negotiation", "description": "Present proposal and handle negotiations", "estimated_days": 5},
    {"name": "Contract Finalization", "description": "Finalize contract terms and get signatures", "estimated_days": 3},
    {"name": "Onboarding Preparation", "description": "Prepare onboarding materials and timeline", "estimated_days": 2},
    {"name": "Implementation Planning", "description": "Plan technical implementation and project timeline", "estimated_days": 5},
    {"name": "System Integration", "description": "Integrate systems and perform testing", "estimated_days": 7},
    {"name": "Go-Live & Support", "description": "Go live with the solution and provide initial support", "estimated_days": 3},
    {"name": "Project Closure", "description": "Complete project documentation and handover", "estimated_days": 2},
)

DEFAULT_STEP_WEIGHT = MAX_PROBABILITY // len(DEFAULT_STEPS)
