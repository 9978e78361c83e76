"""
Application configuration with fail-fast validation.

Values come from the environment (a .env file is honoured) and are validated once at import.
"""
from dotenv import load_dotenv

from slot_be.config_validator import validate_production_config

load_dotenv()


class Config:
    """Runtime configuration for the slot backend."""

    _validated_config = validate_production_config()

    SECRET_KEY = _validated_config['SECRET_KEY']
    DEBUG = _validated_config['DEBUG']
    LOG_LEVEL = _validated_config['LOG_LEVEL']

    # Player defaults: credit 100, bet 5, "add credit" +50
    DEFAULT_CREDIT = _validated_config['DEFAULT_CREDIT']
    DEFAULT_BET = _validated_config['DEFAULT_BET']
    ADD_CREDIT_AMOUNT = _validated_config['ADD_CREDIT_AMOUNT']

    # Game tuning
    NEAR_MISS_FREQUENCY = _validated_config['NEAR_MISS_FREQUENCY']
    DRIFT_PROBABILITY = _validated_config['DRIFT_PROBABILITY']
    MAX_CASCADE_ITERATIONS = _validated_config['MAX_CASCADE_ITERATIONS']
    RTP_TARGET = _validated_config['RTP_TARGET']
    VOLATILITY = _validated_config['VOLATILITY']


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SECRET_KEY = 'test-secret-key-for-the-slot-backend-suite'
