"""
Session state constants and mappings for c3.

Centralizes the session lifecycle states, the attention lanes they sort
into, and the emoji/color display mappings used by the CLI.
"""

from typing import Tuple


# =============================================================================
# Session State Values
# =============================================================================

STATE_SPAWNING = "spawning"
STATE_PROCESSING = "processing"
STATE_AWAITING_INPUT = "awaiting_input"
STATE_AWAITING_PERMISSION = "awaiting_permission"
STATE_COMPLETE = "complete"
STATE_ERROR = "error"

# All valid session state values
ALL_STATES = [
    STATE_SPAWNING,
    STATE_PROCESSING,
    STATE_AWAITING_INPUT,
    STATE_AWAITING_PERMISSION,
    STATE_COMPLETE,
    STATE_ERROR,
]

# States that carry a pending action
AWAITING_STATES = frozenset({STATE_AWAITING_INPUT, STATE_AWAITING_PERMISSION})


def is_awaiting(state: str) -> bool:
    """Check if a state is waiting on the user."""
    return state in AWAITING_STATES


# =============================================================================
# Update Sources
# =============================================================================

SOURCE_PUSH = "push"
SOURCE_SCAN = "scan"


# =============================================================================
# Pending Action Types
# =============================================================================

ACTION_INPUT = "input"
ACTION_PERMISSION = "permission"


# =============================================================================
# Attention Lanes
# =============================================================================

LANE_ATTENTION = "attention"
LANE_WORKING = "working"
LANE_DONE = "done"

STATE_LANES = {
    STATE_AWAITING_PERMISSION: LANE_ATTENTION,
    STATE_AWAITING_INPUT: LANE_ATTENTION,
    STATE_ERROR: LANE_ATTENTION,
    STATE_SPAWNING: LANE_WORKING,
    STATE_PROCESSING: LANE_WORKING,
    STATE_COMPLETE: LANE_DONE,
}


def get_state_lane(state: str) -> str:
    """Get the attention lane a state belongs to."""
    return STATE_LANES.get(state, LANE_WORKING)


# =============================================================================
# State to Emoji / Color Mappings
# =============================================================================

STATE_SYMBOLS = {
    STATE_SPAWNING: ("⚪", "dim"),
    STATE_PROCESSING: ("🟢", "green"),
    STATE_AWAITING_INPUT: ("🔴", "red"),
    STATE_AWAITING_PERMISSION: ("🟠", "orange1"),
    STATE_COMPLETE: ("⚫", "dim"),
    STATE_ERROR: ("🟣", "magenta"),
}


def get_state_symbol(state: str) -> Tuple[str, str]:
    """Get (emoji, color) tuple for a session state."""
    return STATE_SYMBOLS.get(state, ("⚪", "dim"))


def get_state_emoji(state: str) -> str:
    """Get emoji for a session state."""
    return get_state_symbol(state)[0]


def get_state_color(state: str) -> str:
    """Get color name for a session state (for Rich styling)."""
    return get_state_symbol(state)[1]
