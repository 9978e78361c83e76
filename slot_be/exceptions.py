from slot_be.error_codes import ErrorCodes

class AppException(Exception):
    def __init__(self, error_code, status_message, status_code, details=None, action_button=None):
        super().__init__(status_message)
        self.error_code = error_code
        self.status_message = status_message
        self.status_code = status_code
        self.details = details if details is not None else {}
        self.action_button = action_button if action_button is not None else {}

class ValidationException(AppException):
    def __init__(self, status_message="Validation failed", details=None, action_button=None, error_code=ErrorCodes.VALIDATION_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class InvalidConfigurationException(AppException):
    """Raised when paytable, weights or paylines fail validation. Never recovered automatically."""
    def __init__(self, status_message="Invalid game configuration", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INVALID_CONFIGURATION,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class NotFoundException(AppException):
    def __init__(self, status_message="Resource not found", details=None, action_button=None, error_code=ErrorCodes.NOT_FOUND):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=404,
            details=details,
            action_button=action_button
        )

class InsufficientFundsException(AppException):
    def __init__(self, status_message="Insufficient funds", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INSUFFICIENT_FUNDS,
            status_message=status_message,
            status_code=400,
            details=details,
            action_button=action_button if action_button is not None else {"text": "Add credit", "actionType": "ADD_CREDIT"}
        )

class GameLogicException(AppException):
    def __init__(self, status_message="Game logic error", details=None, action_button=None, status_code=400, error_code=ErrorCodes.GAME_LOGIC_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=status_code, # Can be 400 or 409
            details=details,
            action_button=action_button
        )

class SpinInProgressException(GameLogicException):
    def __init__(self, status_message="A spin is already in progress for this session", details=None, action_button=None):
        super().__init__(
            status_message=status_message,
            details=details,
            action_button=action_button,
            status_code=409,
            error_code=ErrorCodes.SPIN_IN_PROGRESS
        )

class InternalInvariantViolationException(AppException):
    """
    Raised when the cascade loop exceeds its iteration cap.

    `partial_result` carries the CascadeResult of the passes committed before the abort,
    so the caller can credit exactly those winnings and nothing more.
    """
    def __init__(self, status_message="Cascade resolution exceeded its iteration cap", details=None,
                 action_button=None, partial_result=None, config=None):
        super().__init__(
            error_code=ErrorCodes.INTERNAL_INVARIANT_VIOLATION,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )
        self.partial_result = partial_result
        self.config = config

class InternalServerErrorException(AppException):
    def __init__(self, status_message="Internal server error", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INTERNAL_SERVER_ERROR,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )
