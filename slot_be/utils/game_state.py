"""
Per-session game state: the spin state machine, credit and the session's own GameConfig.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum

from slot_be.error_codes import ErrorCodes
from slot_be.exceptions import GameLogicException


class GameState(Enum):
    IDLE = "idle"
    SPINNING = "spinning"
    RESOLVING = "resolving"
    TUMBLING = "tumbling"


# SPINNING -> IDLE and RESOLVING -> IDLE cover aborted spins and spins with no win.
ALLOWED_TRANSITIONS = {
    GameState.IDLE: {GameState.SPINNING},
    GameState.SPINNING: {GameState.RESOLVING, GameState.IDLE},
    GameState.RESOLVING: {GameState.TUMBLING, GameState.IDLE},
    GameState.TUMBLING: {GameState.IDLE},
}


def transition(current, target):
    """Returns `target` if the move is legal, raises GameLogicException otherwise."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise GameLogicException(
            status_message=f"Illegal game state transition {current.value} -> {target.value}.",
            details={'from': current.value, 'to': target.value},
            error_code=ErrorCodes.INVALID_STATE_TRANSITION,
            status_code=409
        )
    return target


class GameSession:
    def __init__(self, config, credit=100, bet=5, session_id=None):
        self.session_id = session_id or str(uuid.uuid4())
        self.config = config
        self.credit = credit
        self.bet = bet
        self.state = GameState.IDLE
        self.grid = None
        self.last_result = None
        self.spins = 0
        self.total_wagered = 0
        self.total_won = 0
        self.created_at = datetime.now(timezone.utc)

    def enter(self, target):
        self.state = transition(self.state, target)

    @property
    def is_idle(self):
        return self.state is GameState.IDLE

    def __repr__(self):
        return f"<GameSession id={self.session_id} state={self.state.value} credit={self.credit} bet={self.bet}>"
