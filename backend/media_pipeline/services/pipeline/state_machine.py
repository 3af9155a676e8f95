# backend/media_pipeline/services/pipeline/state_machine.py
"""
Asset lifecycle state machine.

pending -> processing -> ready | failed, and ready/failed -> processing
only through an explicit reprocess. Pure: no I/O, no clock.
"""

from typing import Dict, Tuple

from ...enums import AssetStatus, PipelineEvent
from ...exceptions import InvalidStateTransitionError

TRANSITIONS: Dict[Tuple[AssetStatus, PipelineEvent], AssetStatus] = {
    (AssetStatus.PENDING, PipelineEvent.START_PROCESSING): AssetStatus.PROCESSING,
    (AssetStatus.PROCESSING, PipelineEvent.COMPLETE): AssetStatus.READY,
    (AssetStatus.PROCESSING, PipelineEvent.FAIL): AssetStatus.FAILED,
    (AssetStatus.READY, PipelineEvent.REPROCESS): AssetStatus.PROCESSING,
    (AssetStatus.FAILED, PipelineEvent.REPROCESS): AssetStatus.PROCESSING,
}

TERMINAL_STATES = (AssetStatus.READY, AssetStatus.FAILED)


def transition(state: AssetStatus, event: PipelineEvent) -> AssetStatus:
    """
    Next state for an event.

    Raises:
        InvalidStateTransitionError: If the event is not allowed in state
    """
    try:
        return TRANSITIONS[(AssetStatus(state), PipelineEvent(event))]
    except KeyError:
        raise InvalidStateTransitionError(AssetStatus(state), PipelineEvent(event)) from None


def can_transition(state: AssetStatus, event: PipelineEvent) -> bool:
    return (AssetStatus(state), PipelineEvent(event)) in TRANSITIONS


def is_terminal(state: AssetStatus) -> bool:
    return AssetStatus(state) in TERMINAL_STATES
