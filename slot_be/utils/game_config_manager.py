"""
Game configuration: paytable, symbol weights, paylines and the tuning knobs of the spin path.

A GameConfig is an explicitly owned value. The resolver never mutates one; drift correction
returns a new config with a bumped version, and the caller keeps whichever copy it wants as
the authoritative one between spins.
"""

import copy
import json
import logging
import os
from typing import Any, Dict, Optional

from marshmallow import ValidationError

from slot_be.exceptions import InvalidConfigurationException
from slot_be.schemas import GameConfigSchema
from slot_be.utils.rtp_engine import compute_theoretical_rtp

logger = logging.getLogger(__name__)

# Default five-reel, three-row game.
DEFAULT_WEIGHTS = {
    "cherry": 30,
    "lemon": 25,
    "orange": 20,
    "star": 15,
    "bell": 8,
    "diamond": 2,
}

DEFAULT_PAYTABLE = {
    "cherry": {3: 5, 4: 20, 5: 100},
    "lemon": {3: 4, 4: 15, 5: 80},
    "orange": {3: 3, 4: 10, 5: 50},
    "star": {3: 10, 4: 50, 5: 300},
    "bell": {3: 15, 4: 100, 5: 500},
    "diamond": {3: 50, 4: 300, 5: 2000},
}

DEFAULT_PAYLINES = [
    [1, 1, 1, 1, 1],
    [0, 0, 0, 0, 0],
    [2, 2, 2, 2, 2],
    [0, 1, 2, 1, 0],
    [2, 1, 0, 1, 2],
]

DEFAULT_VISIBLE_ROWS = 3

DEFAULT_SETTINGS = {
    'near_miss_frequency': 0.25,
    'drift_probability': 0.05,
    'volatility': 1.0,
    'rtp_target': 0.95,
    'max_cascade_iterations': 1000,
}

# How many of the best-paying symbols a near-miss must never tease.
NEAR_MISS_EXCLUDED_TOP_SYMBOLS = 2


def _top_payout(tiers):
    return max(tiers.values()) if tiers else 0


class GameConfig:
    def __init__(self, weights, paytable, paylines, visible_rows=DEFAULT_VISIBLE_ROWS,
                 near_miss_frequency=None, near_miss_symbols=None, drift_probability=None,
                 drift_symbol=None, volatility=None, rtp_target=None,
                 max_cascade_iterations=None, version=1):
        self.weights = dict(weights)
        self.paytable = {symbol: dict(tiers) for symbol, tiers in paytable.items()}
        self.paylines = [list(line) for line in paylines]
        self.visible_rows = visible_rows
        self.near_miss_frequency = DEFAULT_SETTINGS['near_miss_frequency'] if near_miss_frequency is None else near_miss_frequency
        self.drift_probability = DEFAULT_SETTINGS['drift_probability'] if drift_probability is None else drift_probability
        self.volatility = DEFAULT_SETTINGS['volatility'] if volatility is None else volatility
        self.rtp_target = DEFAULT_SETTINGS['rtp_target'] if rtp_target is None else rtp_target
        self.max_cascade_iterations = (
            DEFAULT_SETTINGS['max_cascade_iterations'] if max_cascade_iterations is None else max_cascade_iterations
        )
        self.near_miss_symbols = list(near_miss_symbols) if near_miss_symbols else self._default_near_miss_symbols()
        self.drift_symbol = drift_symbol if drift_symbol is not None else self._default_drift_symbol()
        self.version = version

    # --- construction ---

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameConfig":
        """Validates raw (e.g. JSON) data and builds a config. Fails fast on any inconsistency."""
        try:
            loaded = GameConfigSchema().load(data)
        except ValidationError as e:
            logger.warning("Rejected game configuration: %s", e.messages)
            raise InvalidConfigurationException(details={'errors': e.messages}) from e
        return cls(**loaded)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'weights': dict(self.weights),
            'paytable': copy.deepcopy(self.paytable),
            'paylines': [list(line) for line in self.paylines],
            'visible_rows': self.visible_rows,
            'near_miss_frequency': self.near_miss_frequency,
            'near_miss_symbols': list(self.near_miss_symbols),
            'drift_probability': self.drift_probability,
            'drift_symbol': self.drift_symbol,
            'volatility': self.volatility,
            'rtp_target': self.rtp_target,
            'max_cascade_iterations': self.max_cascade_iterations,
        }

    def _replace(self, **changes) -> "GameConfig":
        data = self.to_dict()
        data.update(changes)
        data['version'] = self.version + 1
        return GameConfig(**data)

    def with_weights(self, weights) -> "GameConfig":
        return self._replace(weights=dict(weights))

    def with_paytable(self, paytable) -> "GameConfig":
        return self._replace(paytable=copy.deepcopy(paytable))

    def with_settings(self, **settings) -> "GameConfig":
        return self._replace(**settings)

    # --- derived values ---

    @property
    def symbols(self):
        """Symbol alphabet in weight-table order."""
        return list(self.weights)

    @property
    def reel_count(self):
        return len(self.paylines[0])

    def theoretical_rtp(self) -> float:
        return compute_theoretical_rtp(self.paytable, self.weights, self.paylines)

    def _ranked_by_payout(self):
        return sorted(self.weights, key=lambda s: _top_payout(self.paytable.get(s, {})), reverse=True)

    def _default_drift_symbol(self) -> Optional[str]:
        paying = [s for s in self._ranked_by_payout() if self.paytable.get(s)]
        return paying[0] if paying else None

    def _default_near_miss_symbols(self):
        ranked = self._ranked_by_payout()
        excluded = min(NEAR_MISS_EXCLUDED_TOP_SYMBOLS, max(0, len(ranked) - 1))
        banned = set(ranked[:excluded])
        return [s for s in self.weights if s not in banned]

    def __repr__(self):
        return f"<GameConfig v{self.version} reels={self.reel_count} rows={self.visible_rows} symbols={self.symbols}>"


def _setting(source, name, default=None):
    if source is None:
        return default
    if isinstance(source, dict):
        return source.get(name, default)
    return getattr(source, name, default)


class GameConfigManager:
    """Builds the default configuration and loads JSON configuration files."""

    _config_cache = {}

    @classmethod
    def default_config(cls, settings=None) -> GameConfig:
        """
        The default paytable/weights/paylines with tuning taken from `settings`
        (a Flask config mapping or the Config class). Missing settings use module defaults.
        """
        data = {
            'weights': DEFAULT_WEIGHTS,
            'paytable': DEFAULT_PAYTABLE,
            'paylines': DEFAULT_PAYLINES,
            'visible_rows': DEFAULT_VISIBLE_ROWS,
            'near_miss_frequency': _setting(settings, 'NEAR_MISS_FREQUENCY', DEFAULT_SETTINGS['near_miss_frequency']),
            'drift_probability': _setting(settings, 'DRIFT_PROBABILITY', DEFAULT_SETTINGS['drift_probability']),
            'volatility': _setting(settings, 'VOLATILITY', DEFAULT_SETTINGS['volatility']),
            'rtp_target': _setting(settings, 'RTP_TARGET', DEFAULT_SETTINGS['rtp_target']),
            'max_cascade_iterations': _setting(
                settings, 'MAX_CASCADE_ITERATIONS', DEFAULT_SETTINGS['max_cascade_iterations']
            ),
        }
        return GameConfig.from_dict(data)

    @classmethod
    def load_from_file(cls, path) -> GameConfig:
        """
        Loads a JSON game configuration. Results are cached per path and modification time.

        Raises:
            InvalidConfigurationException: unreadable file, malformed JSON or failed validation.
        """
        abs_path = os.path.abspath(path)
        try:
            mtime = os.path.getmtime(abs_path)
        except OSError as e:
            raise InvalidConfigurationException(
                f"Game configuration file not found: {path}", details={'path': abs_path}
            ) from e

        cached = cls._config_cache.get(abs_path)
        if cached and cached[0] == mtime:
            return cached[1]

        try:
            with open(abs_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfigurationException(
                f"Game configuration file is not valid JSON: {e}", details={'path': abs_path}
            ) from e

        # gameConfig.json files may wrap the settings in a top-level "game" object.
        if isinstance(raw, dict) and isinstance(raw.get('game'), dict):
            raw = raw['game']

        config = GameConfig.from_dict(raw)
        cls._config_cache[abs_path] = (mtime, config)
        logger.info("Loaded game configuration %s from %s", config, abs_path)
        return config

    @classmethod
    def save_to_file(cls, config: GameConfig, path):
        data = config.to_dict()
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        cls._config_cache.pop(os.path.abspath(path), None)
