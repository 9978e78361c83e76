"""
Paytable economics: theoretical return and paytable rebalancing.

Every function here is pure. Nothing reads or writes session state, so a failure
can never leave a half-applied paytable behind.

Modeling assumption: each visible position on a payline is an independent draw from
the normalized weight distribution. Reel-strip layout, near-miss mutation, cascades and
live weight drift are not part of the model, so the value reported here is the
single-evaluation return per spin when one unit is staked on every payline.
"""
import copy
import logging
import math

from slot_be.exceptions import InvalidConfigurationException

logger = logging.getLogger(__name__)

MIN_TIER_COUNT = 3


def normalize_weights(weights):
    """
    Converts raw symbol weights into probabilities.

    Args:
        weights (dict): Symbol -> positive weight.

    Returns:
        dict: Symbol -> probability, summing to 1.

    Raises:
        InvalidConfigurationException: empty table, negative weight or zero total.
    """
    if not weights:
        raise InvalidConfigurationException("Symbol weights must not be empty.")
    negative = [symbol for symbol, weight in weights.items() if weight < 0]
    if negative:
        raise InvalidConfigurationException(
            "Symbol weights must not be negative.", details={'symbols': negative}
        )
    total = sum(weights.values())
    if total <= 0:
        raise InvalidConfigurationException("Sum of symbol weights must be positive.", details={'total': total})
    return {symbol: weight / total for symbol, weight in weights.items()}


def _reel_count(paylines):
    if not paylines:
        raise InvalidConfigurationException("At least one payline is required.")
    return len(paylines[0])


def _exact_run_probability(p, count, reel_count):
    # A run shorter than the reel count needs the next reel to break it.
    if count == reel_count:
        return p ** count
    return (p ** count) * (1 - p)


def _tier_entries(paytable, weights, paylines):
    """Yields (symbol, count, payout, exact-run probability) for every paying tier."""
    probs = normalize_weights(weights)
    reel_count = _reel_count(paylines)
    for symbol, tiers in paytable.items():
        p = probs.get(symbol, 0)
        if p <= 0:
            continue
        for count in range(MIN_TIER_COUNT, reel_count + 1):
            payout = tiers.get(count)
            if not payout:
                continue
            yield symbol, count, payout, _exact_run_probability(p, count, reel_count)


def compute_theoretical_rtp(paytable, weights, paylines):
    """
    Expected return per spin for one bet unit per payline.

    Paylines are treated as independent, so the result is the per-line expectation
    multiplied by the number of paylines.
    """
    ev_per_line = sum(payout * prob for _, _, payout, prob in _tier_entries(paytable, weights, paylines))
    return ev_per_line * len(paylines)


def adjust_paytable_to_rtp(paytable, weights, paylines, target_rtp, preserve_factor=0):
    """
    Rescales the paytable so its theoretical return approaches `target_rtp`.

    `preserve_factor` is an exponent on each payout's size relative to the
    probability-weighted mean payout: positive values push mass towards the big prizes
    (more volatile), 0 keeps the current proportions, negative values flatten towards
    uniform. Payouts are rounded to integers and never drop below 1, so a tier is never
    erased by the rebalance.

    The rounding and the floor of 1 are applied after scaling, so the result only approaches
    the target. On tables with many cheap tiers and a non-zero `preserve_factor` the landed
    RTP can be off by 15% or more (the default game retargeted to 0.9 with factor 1 lands
    near 1.09); callers that need the exact figure should recompute it.

    Returns:
        dict: A new paytable. The input is never mutated.
    """
    current = compute_theoretical_rtp(paytable, weights, paylines)
    if current <= 0:
        logger.info("Current theoretical RTP is %s; nothing to scale, returning a copy.", current)
        return copy.deepcopy(paytable)

    entries = list(_tier_entries(paytable, weights, paylines))
    target_ev_per_line = target_rtp / len(paylines)

    prob_sum = sum(prob for _, _, _, prob in entries)
    avg_base = sum(payout * prob for _, _, payout, prob in entries) / max(1e-12, prob_sum)

    adjusted_weights = []
    for _, _, base_payout, _ in entries:
        rel = base_payout / max(1, avg_base)
        adjusted_weights.append(base_payout * (rel ** preserve_factor))

    denom = sum(entry[3] * weight for entry, weight in zip(entries, adjusted_weights))
    scale = target_ev_per_line / denom if denom > 0 else 1.0

    new_table = {symbol: {} for symbol in paytable}
    for (symbol, count, _, _), weight in zip(entries, adjusted_weights):
        # Half-up rounding, so x.5 never flips down the way round() would on even values.
        new_table[symbol][count] = max(1, int(math.floor(weight * scale + 0.5)))

    logger.debug(
        "Adjusted paytable: rtp %.6f -> target %.6f (preserve_factor=%s, K=%.6f)",
        current, target_rtp, preserve_factor, scale
    )
    return new_table


def build_rtp_report(paytable, weights, paylines):
    """
    Per-tier breakdown of the theoretical return.

    Returns:
        dict: probabilities, one row per paying (symbol, count) with its contribution to
        the total, the hit probability of a single line, and the total RTP.
    """
    probs = normalize_weights(weights)
    num_lines = len(paylines)
    tiers = []
    hit_probability = 0.0
    for symbol, count, payout, prob in _tier_entries(paytable, weights, paylines):
        hit_probability += prob
        tiers.append({
            'symbol': symbol,
            'count': count,
            'payout': payout,
            'probability': prob,
            'contribution': prob * payout * num_lines,
        })
    return {
        'probabilities': probs,
        'tiers': tiers,
        'line_hit_probability': hit_probability,
        'paylines': num_lines,
        'reel_count': _reel_count(paylines),
        'rtp': sum(t['contribution'] for t in tiers),
    }
