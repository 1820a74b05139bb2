"""
Lifecycle states of a single purchase attempt.

An attempt walks the pipeline in order and ends either ``COMPLETED`` (a
confirmed purchase that was reported) or ``ABORTED`` (with the error that
stopped it).
"""

from __future__ import annotations

from enum import Enum


class AttemptState(str, Enum):
    """Possible states for a purchase attempt."""

    PENDING = "pending"
    QUOTING = "quoting"
    APPROVING = "approving"
    SIMULATING = "simulating"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    REPORTING = "reporting"
    COMPLETED = "completed"
    ABORTED = "aborted"
