import json

import pytest
from click.testing import CliRunner

from slot_be.admin_cli import cli
from slot_be.utils.game_config_manager import DEFAULT_WEIGHTS, GameConfigManager


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "game.json"
    path.write_text(json.dumps({
        "weights": {"A": 10, "B": 10},
        "paytable": {"A": {"3": 5, "4": 20, "5": 100}},
        "paylines": [[0, 0, 0, 0, 0]],
        "visible_rows": 1,
        "drift_probability": 0.0,
    }))
    return str(path)


def test_show_config_defaults(runner):
    result = runner.invoke(cli, ['show-config'])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)['weights'] == DEFAULT_WEIGHTS


def test_rtp_command(runner, config_file):
    result = runner.invoke(cli, ['rtp', '--config', config_file])
    assert result.exit_code == 0, result.output
    assert "Theoretical RTP: 4.062500" in result.output
    assert "Tier contributions" not in result.output


def test_rtp_command_verbose(runner, config_file):
    result = runner.invoke(cli, ['-v', 'rtp', '--config', config_file])
    assert result.exit_code == 0, result.output
    assert "Tier contributions" in result.output


def test_adjust_writes_rebalanced_config(runner, config_file, tmp_path):
    output = tmp_path / "rebalanced.json"
    result = runner.invoke(cli, ['adjust', '--config', config_file, '--target', '1.0', '--output', str(output)])
    assert result.exit_code == 0, result.output
    assert "RTP after:  1.000000" in result.output

    adjusted = GameConfigManager.load_from_file(str(output))
    assert adjusted.paytable == {"A": {3: 1, 4: 5, 5: 25}}
    assert adjusted.rtp_target == 1.0


def test_adjust_rejects_negative_target(runner):
    result = runner.invoke(cli, ['adjust', '--target=-0.5'])
    assert result.exit_code == 1


def test_missing_config_file(runner, tmp_path):
    result = runner.invoke(cli, ['rtp', '--config', str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_simulate_json(runner, config_file):
    result = runner.invoke(cli, ['simulate', '--config', config_file, '--spins', '50', '--seed', '1', '--json'])
    assert result.exit_code == 0, result.output
    summary = json.loads(result.output)
    assert summary['spins'] == 50
    assert summary['total_bet'] == 50


def test_simulate_rejects_zero_spins(runner):
    result = runner.invoke(cli, ['simulate', '--spins', '0'])
    assert result.exit_code == 1
