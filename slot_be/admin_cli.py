#!/usr/bin/env python3
"""
Slot Admin CLI Tool

Command-line tools for working with game configurations offline:
- Theoretical RTP reports
- Paytable rebalancing towards a target RTP
- Monte Carlo simulation of the full cascade spin path
- Inspecting the effective configuration

Usage:
    slot-admin --help
    slot-admin rtp --config game.json
    slot-admin adjust --target 0.95 --preserve-factor 1 --output rebalanced.json
    slot-admin simulate --spins 100000 --seed 42
"""

import json
import sys

import click

from slot_be.exceptions import AppException
from slot_be.utils.game_config_manager import GameConfigManager
from slot_be.utils.rtp_engine import adjust_paytable_to_rtp, build_rtp_report, compute_theoretical_rtp
from slot_be.utils.slot_tester import SlotTester


def _load_config(path):
    if path:
        return GameConfigManager.load_from_file(path)
    return GameConfigManager.default_config()


def _fail(message, details=None):
    click.echo(f"❌ Error: {message}", err=True)
    if details:
        click.echo(json.dumps(details, indent=2, default=str), err=True)
    sys.exit(1)


config_option = click.option(
    '--config', 'config_path', type=click.Path(dir_okay=False), default=None,
    help='JSON game configuration (defaults to the built-in game).'
)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.pass_context
def cli(ctx, verbose):
    """Slot Admin CLI - RTP analysis and tuning tools for the slot engine."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose


@cli.command('show-config')
@config_option
def show_config(config_path):
    """Print the effective game configuration as JSON."""
    try:
        config = _load_config(config_path)
    except AppException as e:
        _fail(e.status_message, e.details)
    click.echo(json.dumps(config.to_dict(), indent=2))


@cli.command()
@config_option
@click.pass_context
def rtp(ctx, config_path):
    """Compute the theoretical RTP of a configuration."""
    try:
        config = _load_config(config_path)
        report = build_rtp_report(config.paytable, config.weights, config.paylines)
    except AppException as e:
        _fail(e.status_message, e.details)

    click.echo(f"🎰 Reels: {report['reel_count']}  Paylines: {report['paylines']}")
    click.echo(f"📊 Theoretical RTP: {report['rtp']:.6f} ({report['rtp'] * 100:.2f}%)")
    click.echo(f"🎯 Line hit probability: {report['line_hit_probability']:.6f}")

    if ctx.obj.get('verbose'):
        click.echo("\nSymbol probabilities")
        click.echo("-" * 40)
        for symbol, probability in report['probabilities'].items():
            click.echo(f"  {symbol:<12} {probability:.4f}")
        click.echo("\nTier contributions")
        click.echo("-" * 40)
        for tier in report['tiers']:
            click.echo(
                f"  {tier['symbol']:<12} x{tier['count']}  pays {tier['payout']:<6} "
                f"p={tier['probability']:.6f}  rtp+={tier['contribution']:.6f}"
            )


@cli.command()
@config_option
@click.option('--target', 'target_rtp', type=float, required=True, help='Target RTP, e.g. 0.95')
@click.option('--preserve-factor', type=float, default=0.0, show_default=True,
              help='Exponent on each payout relative to the mean; 0 keeps proportions, >0 favours big prizes, <0 flattens.')
@click.option('--output', type=click.Path(dir_okay=False, writable=True), default=None,
              help='Write the rebalanced configuration to this file.')
def adjust(config_path, target_rtp, preserve_factor, output):
    """Rebalance the paytable towards a target RTP."""
    if target_rtp < 0:
        _fail("Target RTP must not be negative.", {'target': target_rtp})
    try:
        config = _load_config(config_path)
        rtp_before = compute_theoretical_rtp(config.paytable, config.weights, config.paylines)
        paytable = adjust_paytable_to_rtp(
            config.paytable, config.weights, config.paylines, target_rtp, preserve_factor
        )
        adjusted = config.with_paytable(paytable).with_settings(rtp_target=min(1.0, target_rtp))
    except AppException as e:
        _fail(e.status_message, e.details)

    click.echo(f"📉 RTP before: {rtp_before:.6f}")
    click.echo(f"📈 RTP after:  {adjusted.theoretical_rtp():.6f} (target {target_rtp})")

    if output:
        GameConfigManager.save_to_file(adjusted, output)
        click.echo(f"💾 Saved rebalanced configuration to {output}")
    else:
        click.echo(json.dumps(adjusted.to_dict()['paytable'], indent=2))


@cli.command()
@config_option
@click.option('--spins', type=int, default=10000, show_default=True, help='Number of spins to simulate.')
@click.option('--bet', type=int, default=1, show_default=True, help='Bet per spin.')
@click.option('--seed', type=int, default=None, help='Seed for a reproducible run.')
@click.option('--json', 'as_json', is_flag=True, help='Print the summary as JSON.')
def simulate(config_path, spins, bet, seed, as_json):
    """Simulate play and report empirical statistics."""
    if spins < 1 or bet < 1:
        _fail("Spins and bet must both be at least 1.", {'spins': spins, 'bet': bet})
    try:
        config = _load_config(config_path)
    except AppException as e:
        _fail(e.status_message, e.details)

    tester = SlotTester(config, num_spins=spins, bet_amount=bet, seed=seed)
    summary = tester.run_simulation()
    if as_json:
        click.echo(json.dumps(summary, indent=2))
    else:
        tester.print_summary_statistics()


if __name__ == '__main__':
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\n\n👋 Slot Admin CLI interrupted by user")
        sys.exit(0)
