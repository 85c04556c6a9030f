"""Seed data for the in-memory fallback store."""

from __future__ import annotations

from typing import Any

from leadflow.core.constants import EntityKind, EntityStatus

TEMPLATES: tuple[dict[str, Any], ...] = (
    {
        "name": "Standard Client Onboarding",
        "description": "Standard client onboarding, from initial contact to final setup.",
        "steps": [
            {"name": "Initial Contact", "estimated_days": 2, "probability_percent": 20},
            {"name": "Document Collection", "estimated_days": 5, "probability_percent": 30},
            {"name": "Contract Signing", "estimated_days": 3, "probability_percent": 25},
            {"name": "Account Setup", "estimated_days": 2, "probability_percent": 15},
            {"name": "Training Session", "estimated_days": 7, "probability_percent": 10},
        ],
    },
    {
        "name": "SMB Onboarding Lite",
        "description": "Short onboarding for small businesses.",
        "steps": [
            {"name": "Quick Setup Call", "estimated_days": 1, "probability_percent": 40},
            {"name": "Basic Configuration", "estimated_days": 2, "probability_percent": 35},
            {"name": "Go-Live Support", "estimated_days": 3, "probability_percent": 25},
        ],
    },
    {
        "name": "Series A Funding Process",
        "description": "Fundraising workflow for a Series A round.",
        "steps": [
            {"name": "Initial Pitch Deck Review", "estimated_days": 3, "probability_percent": 10},
            {"name": "Due Diligence Preparation", "estimated_days": 10, "probability_percent": 15},
            {"name": "Investor Meetings", "estimated_days": 14, "probability_percent": 20},
            {"name": "Term Sheet Negotiation", "estimated_days": 7, "probability_percent": 25},
            {"name": "Legal Documentation", "estimated_days": 10, "probability_percent": 15},
            {"name": "Closing and Fund Transfer", "estimated_days": 5, "probability_percent": 15},
        ],
    },
)

# template_index refers to TEMPLATES; None means the default step sequence.
# completed_steps: how many leading steps are already completed.
ENTITIES: tuple[dict[str, Any], ...] = (
    {
        "kind": EntityKind.LEAD,
        "title": "Acme Corp platform rollout",
        "client_name": "Acme Corp",
        "status": EntityStatus.IN_PROGRESS,
        "template_index": 0,
        "completed_steps": 2,
    },
    {
        "kind": EntityKind.LEAD,
        "title": "Globex Inc. finance suite",
        "client_name": "Globex Inc.",
        "status": EntityStatus.IN_PROGRESS,
        "template_index": None,
        "completed_steps": 0,
    },
    {
        "kind": EntityKind.LEAD,
        "title": "Initech integration",
        "client_name": "Initech",
        "status": EntityStatus.WON,
        "template_index": 1,
        "completed_steps": 3,
    },
    {
        "kind": EntityKind.VC,
        "title": "Series A round",
        "client_name": "Northwind Ventures",
        "status": EntityStatus.IN_PROGRESS,
        "template_index": 2,
        "completed_steps": 1,
    },
)
