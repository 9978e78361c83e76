"""
Game Event Logging
Structured audit lines for spins, payouts, weight drift and configuration changes
"""

import json
import logging
from datetime import datetime, timezone

from flask import g, has_request_context

audit_logger = logging.getLogger('slot_be.audit')


def _request_id():
    # Spins also run from the CLI and the slot tester, outside any request.
    if has_request_context():
        return g.get('request_id', 'N/A')
    return 'N/A'


class GameEventLogger:
    """Centralized game event logging"""

    @staticmethod
    def log_game_event(event_type: str, session_id: str = None, bet_amount: int = None,
                       win_amount: int = None, config_version: int = None, details: dict = None,
                       level: int = logging.INFO):
        """Log spin/cascade related events"""
        event_data = {
            'event_type': 'game',
            'sub_type': event_type,
            'session_id': session_id,
            'bet_amount': bet_amount,
            'win_amount': win_amount,
            'config_version': config_version,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': _request_id(),
            'details': details or {}
        }
        audit_logger.log(level, f"GAME_EVENT: {json.dumps(event_data, default=str)}")

    @staticmethod
    def log_financial_event(event_type: str, session_id: str, amount: int = None,
                            balance_before: int = None, balance_after: int = None, details: dict = None):
        """Log credit movements (stake, payout, top-up)"""
        event_data = {
            'event_type': 'financial',
            'sub_type': event_type,
            'session_id': session_id,
            'amount': amount,
            'balance_before': balance_before,
            'balance_after': balance_after,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': _request_id(),
            'details': details or {}
        }
        audit_logger.info(f"FINANCIAL_EVENT: {json.dumps(event_data, default=str)}")

    @staticmethod
    def log_config_event(event_type: str, config_version: int = None, details: dict = None):
        """Log paytable/weight changes"""
        event_data = {
            'event_type': 'config',
            'sub_type': event_type,
            'config_version': config_version,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': _request_id(),
            'details': details or {}
        }
        audit_logger.warning(f"CONFIG_EVENT: {json.dumps(event_data, default=str)}")
