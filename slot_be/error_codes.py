class ErrorCodes:
    # Generic
    GENERIC_ERROR = "GENERIC_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    # Game configuration
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"

    # Sessions and spins
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_BET = "INVALID_BET"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    GAME_LOGIC_ERROR = "GAME_LOGIC_ERROR"
    SPIN_IN_PROGRESS = "SPIN_IN_PROGRESS"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    INTERNAL_INVARIANT_VIOLATION = "INTERNAL_INVARIANT_VIOLATION"
