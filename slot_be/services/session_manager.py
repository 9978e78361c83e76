"""
In-memory Session Manager
Owns every player's GameSession and serializes spins per session
"""

import logging
import threading

from slot_be.error_codes import ErrorCodes
from slot_be.exceptions import NotFoundException, SpinInProgressException, ValidationException
from slot_be.utils.game_config_manager import GameConfigManager
from slot_be.utils.game_logger import GameEventLogger
from slot_be.utils.game_state import GameSession
from slot_be.utils.rtp_engine import adjust_paytable_to_rtp
from slot_be.utils.spin_handler import handle_spin

logger = logging.getLogger(__name__)

RTP_TARGET_RANGE = (0.0, 1.0)
VOLATILITY_RANGE = (0.5, 2.0)


class SessionManager:
    def __init__(self, app=None, rng_factory=None):
        self.sessions = {}  # session_id -> GameSession
        self._locks = {}  # session_id -> threading.Lock
        self._registry_lock = threading.Lock()
        self.rng_factory = rng_factory
        self.settings = {}

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.settings = app.config
        app.session_manager = self

    def _setting(self, name, default):
        return self.settings.get(name, default) if self.settings else default

    def create_session(self, credit=None, bet=None, config=None):
        credit = self._setting('DEFAULT_CREDIT', 100) if credit is None else credit
        bet = self._setting('DEFAULT_BET', 5) if bet is None else bet
        config = config or GameConfigManager.default_config(self.settings)

        session = GameSession(config=config, credit=credit, bet=bet)
        with self._registry_lock:
            self.sessions[session.session_id] = session
            self._locks[session.session_id] = threading.Lock()
        logger.info(f"Created session {session.session_id} with credit={credit} bet={bet}")
        return session

    def get_session(self, session_id):
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundException(
                "Game session not found.", details={'session_id': session_id},
                error_code=ErrorCodes.SESSION_NOT_FOUND
            )
        return session

    def delete_session(self, session_id):
        with self._registry_lock:
            session = self.sessions.pop(session_id, None)
            self._locks.pop(session_id, None)
        if session is None:
            raise NotFoundException(
                "Game session not found.", details={'session_id': session_id},
                error_code=ErrorCodes.SESSION_NOT_FOUND
            )
        return session

    def _acquire(self, session_id):
        session = self.get_session(session_id)
        lock = self._locks.get(session_id)
        if lock is None:
            # Deleted between the lookup and here.
            raise NotFoundException(
                "Game session not found.", details={'session_id': session_id},
                error_code=ErrorCodes.SESSION_NOT_FOUND
            )
        # Never queue behind a running spin; a second request is rejected outright.
        if not lock.acquire(blocking=False):
            raise SpinInProgressException(details={'session_id': session_id, 'state': session.state.value})
        return session, lock

    def spin(self, session_id, rng=None, grid=None, on_step=None):
        session, lock = self._acquire(session_id)
        try:
            if rng is None and self.rng_factory is not None:
                rng = self.rng_factory()
            return session, handle_spin(session, rng=rng, grid=grid, on_step=on_step)
        finally:
            lock.release()

    def set_bet(self, session_id, bet):
        """Sets the stake, clamped to [1, credit]."""
        session, lock = self._acquire(session_id)
        try:
            if bet < 1:
                raise ValidationException("Bet must be at least 1.", details={'bet': bet}, error_code=ErrorCodes.INVALID_BET)
            session.bet = max(1, min(bet, session.credit)) if session.credit > 0 else bet
            return session
        finally:
            lock.release()

    def add_credit(self, session_id, amount=None):
        amount = self._setting('ADD_CREDIT_AMOUNT', 50) if amount is None else amount
        session, lock = self._acquire(session_id)
        try:
            if amount <= 0:
                raise ValidationException(
                    "Credit amount must be positive.", details={'amount': amount},
                    error_code=ErrorCodes.INVALID_AMOUNT
                )
            balance_before = session.credit
            session.credit += amount
            GameEventLogger.log_financial_event(
                'CREDIT_ADDED', session_id, amount=amount,
                balance_before=balance_before, balance_after=session.credit
            )
            return session
        finally:
            lock.release()

    def apply_config(self, session_id, config):
        session, lock = self._acquire(session_id)
        try:
            session.config = config
            GameEventLogger.log_config_event('SESSION_CONFIG_REPLACED', config_version=config.version,
                                             details={'session_id': session_id})
            return session
        finally:
            lock.release()

    def set_rtp_volatility(self, session_id, rtp_target, volatility=None, preserve_factor=0.0):
        """
        Clamps the RTP target to [0, 1] and volatility to [0.5, 2.0], then rebalances the
        session paytable towards the target as one new config version.
        A volatility of None keeps the session's current setting.
        """
        rtp_target = max(RTP_TARGET_RANGE[0], min(RTP_TARGET_RANGE[1], rtp_target))
        session, lock = self._acquire(session_id)
        try:
            config = session.config
            if volatility is None:
                volatility = config.volatility
            volatility = max(VOLATILITY_RANGE[0], min(VOLATILITY_RANGE[1], volatility))
            rtp_before = config.theoretical_rtp()
            paytable = adjust_paytable_to_rtp(
                config.paytable, config.weights, config.paylines, rtp_target, preserve_factor
            )
            session.config = config.with_settings(
                paytable=paytable, rtp_target=rtp_target, volatility=volatility
            )
            GameEventLogger.log_config_event(
                'RTP_TARGET_APPLIED', config_version=session.config.version,
                details={
                    'session_id': session_id, 'rtp_before': rtp_before,
                    'rtp_after': session.config.theoretical_rtp(),
                    'rtp_target': rtp_target, 'volatility': volatility, 'preserve_factor': preserve_factor,
                }
            )
            return session
        finally:
            lock.release()
