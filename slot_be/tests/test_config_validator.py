import pytest

from slot_be.config_validator import ConfigValidationError, ConfigValidator

GAME_VARS = (
    'DEFAULT_CREDIT', 'DEFAULT_BET', 'ADD_CREDIT_AMOUNT', 'MAX_CASCADE_ITERATIONS',
    'NEAR_MISS_FREQUENCY', 'DRIFT_PROBABILITY', 'RTP_TARGET', 'VOLATILITY', 'LOG_LEVEL',
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in GAME_VARS + ('SECRET_KEY', 'FLASK_DEBUG'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('TESTING', 'true')


def test_defaults_in_development():
    config = ConfigValidator(is_production=False).validate_all()
    assert config['DEFAULT_CREDIT'] == 100
    assert config['DEFAULT_BET'] == 5
    assert config['ADD_CREDIT_AMOUNT'] == 50
    assert config['NEAR_MISS_FREQUENCY'] == 0.25
    assert config['DRIFT_PROBABILITY'] == 0.05
    assert config['MAX_CASCADE_ITERATIONS'] == 1000
    assert config['RTP_TARGET'] == 0.95
    assert config['VOLATILITY'] == 1.0
    assert config['LOG_LEVEL'] == 'INFO'
    assert config['DEBUG'] is False
    assert len(config['SECRET_KEY']) >= 32


def test_reads_overrides(monkeypatch):
    monkeypatch.setenv('NEAR_MISS_FREQUENCY', '0.1')
    monkeypatch.setenv('MAX_CASCADE_ITERATIONS', '200')
    monkeypatch.setenv('LOG_LEVEL', 'debug')
    config = ConfigValidator(is_production=False).validate_all()
    assert config['NEAR_MISS_FREQUENCY'] == 0.1
    assert config['MAX_CASCADE_ITERATIONS'] == 200
    assert config['LOG_LEVEL'] == 'DEBUG'


@pytest.mark.parametrize("name, value", [
    ('NEAR_MISS_FREQUENCY', '1.5'),
    ('DRIFT_PROBABILITY', 'often'),
    ('VOLATILITY', '0.1'),
    ('DEFAULT_BET', '0'),
    ('MAX_CASCADE_ITERATIONS', 'many'),
])
def test_rejects_bad_game_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigValidationError) as excinfo:
        ConfigValidator(is_production=False).validate_all()
    assert name in str(excinfo.value)


def test_unknown_log_level_falls_back(monkeypatch):
    monkeypatch.setenv('LOG_LEVEL', 'chatty')
    validator = ConfigValidator(is_production=False)
    assert validator.validate_all()['LOG_LEVEL'] == 'INFO'
    assert any('LOG_LEVEL' in w for w in validator.warnings)


def test_low_cascade_cap_warns(monkeypatch):
    monkeypatch.setenv('MAX_CASCADE_ITERATIONS', '10')
    validator = ConfigValidator(is_production=False)
    validator.validate_all()
    assert any('MAX_CASCADE_ITERATIONS' in w for w in validator.warnings)


def test_production_requires_secret_key():
    with pytest.raises(ConfigValidationError):
        ConfigValidator(is_production=True).validate_all()


def test_production_rejects_debug(monkeypatch):
    monkeypatch.setenv('SECRET_KEY', 'x' * 40)
    monkeypatch.setenv('FLASK_DEBUG', 'true')
    with pytest.raises(ConfigValidationError) as excinfo:
        ConfigValidator(is_production=True).validate_all()
    assert 'DEBUG' in str(excinfo.value)


def test_production_short_secret_key(monkeypatch):
    monkeypatch.setenv('SECRET_KEY', 'short')
    with pytest.raises(ConfigValidationError) as excinfo:
        ConfigValidator(is_production=True).validate_all()
    assert 'SECRET_KEY' in str(excinfo.value)
