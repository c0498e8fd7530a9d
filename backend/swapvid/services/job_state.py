"""
Job State Management Service
"""

from typing import List, Optional

from swapvid.config.constants import TERMINAL_STATUSES


class JobStateError(Exception):
    """Exception raised for invalid state transitions"""

    pass


# Valid state transitions
VALID_TRANSITIONS = {
    "pending": ["processing", "failed"],
    "processing": ["complete", "failed"],
    "complete": [],  # Terminal state
    "failed": [],  # Terminal state
}


def source_states(new_state: str) -> List[str]:
    """
    States a job may be in for a transition into new_state

    Args:
        new_state: Target state

    Returns:
        List of allowed current states

    Raises:
        JobStateError: If new_state is not a known state
    """
    if new_state not in VALID_TRANSITIONS:
        raise JobStateError(f"Unknown state: {new_state}")
    return [state for state, targets in VALID_TRANSITIONS.items() if new_state in targets]


def is_terminal_state(state: Optional[str]) -> bool:
    """
    Check if state is a terminal state

    Args:
        state: Job state

    Returns:
        True if state is complete or failed
    """
    return state in TERMINAL_STATUSES
