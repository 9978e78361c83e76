import logging
import math
import secrets
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from slot_be.error_codes import ErrorCodes
from slot_be.exceptions import (
    InsufficientFundsException, InternalInvariantViolationException,
    InvalidConfigurationException, SpinInProgressException, ValidationException
)
from slot_be.utils.game_logger import GameEventLogger
from slot_be.utils.game_state import GameState
from slot_be.utils.grid import Grid
from slot_be.utils.near_miss import evaluate_near_miss

logger = logging.getLogger(__name__)

VOLATILITY_MULTIPLIER_MIN = 0.5
VOLATILITY_MULTIPLIER_MAX = 3.0


@dataclass
class WinEvent:
    payline_index: int
    line: List[int]
    symbol: str
    count: int
    payout: float
    win_amount: int
    positions: List[List[int]] = field(default_factory=list)


@dataclass
class CascadePass:
    iteration: int
    wins: List[WinEvent]
    total: int
    accumulated: int


@dataclass
class CascadeResult:
    total_win: int = 0
    passes: List[CascadePass] = field(default_factory=list)
    initial_grid: List[List[str]] = field(default_factory=list)
    grid: List[List[str]] = field(default_factory=list)
    near_miss: Optional[Dict[str, Any]] = None
    aborted: bool = False
    config_version: int = 1

    @property
    def cascade_count(self):
        return len(self.passes)

    def to_dict(self):
        return asdict(self)


def draw_weighted_symbol(weights, rng=None):
    """Weighted random sample of one symbol."""
    rng = rng or secrets.SystemRandom()
    symbols = list(weights)
    symbol_weights = [weights[s] for s in symbols]
    if not symbols or sum(symbol_weights) <= 0:
        raise InvalidConfigurationException("Cannot draw a symbol from an empty or zero-sum weight table.")
    return rng.choices(symbols, weights=symbol_weights, k=1)[0]


def generate_spin_grid(config, rng=None):
    """Fresh `reel_count x visible_rows` grid drawn from the config's current weights."""
    rng = rng or secrets.SystemRandom()
    return Grid([
        [draw_weighted_symbol(config.weights, rng) for _ in range(config.visible_rows)]
        for _ in range(config.reel_count)
    ])


def evaluate_payline(grid, line, paytable):
    """
    Longest run of identical symbols along `line`, starting at reel 0.

    The run stops at the first mismatch; there is no wraparound and no skipping.

    Returns:
        dict | None: {'symbol', 'count', 'win'} when the run length has a paytable tier.
    """
    first = grid[0][line[0]]
    count = 1
    for reel in range(1, len(line)):
        if grid[reel][line[reel]] == first:
            count += 1
        else:
            break

    payout = paytable.get(first, {}).get(count)
    if payout:
        return {'symbol': first, 'count': count, 'win': payout}
    return None


def calculate_payout(grid, paylines, paytable, bet, volatility=1.0):
    """
    Evaluates every payline once.

    Each line pays floor(tier payout x volatility multiplier) x bet. The multiplier is the
    volatility setting clamped to [0.5, 3.0]; 1.0 leaves the paytable untouched.

    Returns:
        dict: {'total': int, 'wins': [WinEvent]}
    """
    multiplier = max(VOLATILITY_MULTIPLIER_MIN, min(VOLATILITY_MULTIPLIER_MAX, volatility))
    total = 0
    wins = []
    for idx, line in enumerate(paylines):
        res = evaluate_payline(grid, line, paytable)
        if not res:
            continue
        line_win = int(math.floor(res['win'] * multiplier)) * bet
        if line_win <= 0:
            continue
        total += line_win
        wins.append(WinEvent(
            payline_index=idx,
            line=list(line),
            symbol=res['symbol'],
            count=res['count'],
            payout=res['win'],
            win_amount=line_win,
            positions=[[reel, line[reel]] for reel in range(res['count'])]
        ))
    return {'total': total, 'wins': wins}


def handle_cascade_fill(grid, wins, weights, rng=None):
    """
    Replaces every winning cell with a freshly drawn symbol.

    Cells shared by several winning lines are replaced once; replacement is keyed by
    (reel, row), not by line.

    Returns:
        list[tuple]: the replaced positions in first-seen order.
    """
    rng = rng or secrets.SystemRandom()
    seen = set()
    replaced = []
    for win in wins:
        for reel, row in win.positions:
            if (reel, row) in seen:
                continue
            seen.add((reel, row))
            grid.set_cell(reel, row, draw_weighted_symbol(weights, rng))
            replaced.append((reel, row))
    return replaced


def apply_drift_correction(config, rng=None):
    """
    Occasionally shaves one unit of weight off the drift symbol (floor 1).

    Returns the config unchanged, or a new config version carrying the reduced weight.
    The theoretical RTP of the input config no longer describes the returned one.
    """
    rng = rng or secrets.SystemRandom()
    symbol = config.drift_symbol
    if symbol is None or config.drift_probability <= 0:
        return config
    if rng.random() >= config.drift_probability:
        return config

    current = config.weights.get(symbol, 1)
    if current <= 1:
        return config

    weights = dict(config.weights)
    weights[symbol] = max(1, current - 1)
    drifted = config.with_weights(weights)
    GameEventLogger.log_config_event(
        'WEIGHT_DRIFT', config_version=drifted.version,
        details={'symbol': symbol, 'weight_before': current, 'weight_after': weights[symbol]}
    )
    return drifted


def resolve_spin(grid, bet, config, rng=None, on_step=None):
    """
    Runs the cascade loop on a settled grid.

    Each pass evaluates every payline; a paying pass is committed (added to the accumulator),
    its winning cells are redrawn, `on_step` receives the pass and drift correction may
    produce a new config. The loop ends on the first pass without a win.

    Args:
        grid (Grid | list): settled grid; a Grid is mutated in place.
        bet (int): stake per line.
        config (GameConfig): paytable, weights, paylines and tuning.
        rng: random.Random compatible source. Defaults to secrets.SystemRandom().
        on_step (callable): called with each committed CascadePass.

    Returns:
        tuple: (CascadeResult, GameConfig) - the config is the one to keep for the next spin.

    Raises:
        InternalInvariantViolationException: more than `config.max_cascade_iterations` paying
            passes, or any error raised after a pass was committed (refill, `on_step`, drift).
            `partial_result` holds only the committed passes.
    """
    rng = rng or secrets.SystemRandom()
    if not isinstance(grid, Grid):
        grid = Grid(grid)

    result = CascadeResult(initial_grid=grid.to_list(), config_version=config.version)

    while True:
        evaluation = calculate_payout(grid, config.paylines, config.paytable, bet, config.volatility)
        pass_total = evaluation['total']
        if pass_total == 0:
            break

        if result.cascade_count >= config.max_cascade_iterations:
            result.aborted = True
            result.grid = grid.to_list()
            result.config_version = config.version
            logger.error(
                "Cascade exceeded %s iterations; aborting with %s committed.",
                config.max_cascade_iterations, result.total_win
            )
            raise InternalInvariantViolationException(
                details={
                    'accumulated': result.total_win,
                    'passes': result.cascade_count,
                    'max_cascade_iterations': config.max_cascade_iterations,
                },
                partial_result=result,
                config=config
            )

        result.total_win += pass_total
        cascade_pass = CascadePass(
            iteration=result.cascade_count + 1,
            wins=evaluation['wins'],
            total=pass_total,
            accumulated=result.total_win
        )
        result.passes.append(cascade_pass)

        try:
            handle_cascade_fill(grid, evaluation['wins'], config.weights, rng)
            if on_step is not None:
                on_step(cascade_pass)
            config = apply_drift_correction(config, rng)
        except Exception as e:
            result.aborted = True
            result.grid = grid.to_list()
            result.config_version = config.version
            logger.exception("Cascade pass %s failed; stopping with %s committed.", cascade_pass.iteration, result.total_win)
            raise InternalInvariantViolationException(
                status_message="Cascade resolution was interrupted",
                details={
                    'accumulated': result.total_win,
                    'passes': result.cascade_count,
                    'error': type(e).__name__,
                },
                partial_result=result,
                config=config
            ) from e

    result.grid = grid.to_list()
    result.config_version = config.version
    return result, config


def _validate_bet_and_balance(session):
    if session.bet <= 0:
        raise ValidationException("Bet must be positive.", details={'bet': session.bet}, error_code=ErrorCodes.INVALID_BET)
    if session.bet > session.credit:
        raise InsufficientFundsException(details={'credit': session.credit, 'bet': session.bet})


def handle_spin(session, rng=None, grid=None, on_step=None):
    """
    Plays one full idle -> spinning -> resolving -> (tumbling) -> idle cycle for a session.

    The stake is deducted up front. Winnings are credited once resolution finishes, or,
    if the cascade hits its iteration cap or is interrupted, only the committed part before
    re-raising. The stake is refunded only for failures before resolution starts.

    Args:
        session (GameSession): must be idle.
        rng: random.Random compatible source.
        grid: optional settled grid to resolve instead of drawing one (tests, replays).
        on_step (callable): forwarded to resolve_spin.

    Returns:
        CascadeResult
    """
    if not session.is_idle:
        raise SpinInProgressException(details={'state': session.state.value})
    _validate_bet_and_balance(session)

    rng = rng or secrets.SystemRandom()
    bet = session.bet
    balance_before = session.credit

    session.credit -= bet
    session.total_wagered += bet
    session.spins += 1
    session.enter(GameState.SPINNING)
    GameEventLogger.log_financial_event(
        'STAKE', session.session_id, amount=bet, balance_before=balance_before, balance_after=session.credit
    )

    resolution_started = False
    try:
        config = session.config
        if grid is None:
            spin_grid = generate_spin_grid(config, rng)
        elif isinstance(grid, Grid):
            spin_grid = grid
        else:
            spin_grid = Grid(grid)
        session.grid = spin_grid
        session.enter(GameState.RESOLVING)

        initial = calculate_payout(spin_grid, config.paylines, config.paytable, bet, config.volatility)
        if initial['total'] == 0:
            resolution_started = True
            initial_grid = spin_grid.to_list()
            shown_grid, near_miss = evaluate_near_miss(
                spin_grid, config.paylines, config.near_miss_frequency, rng,
                symbols=config.symbols, near_symbols=config.near_miss_symbols
            )
            if near_miss is not None and calculate_payout(
                    shown_grid, config.paylines, config.paytable, bet, config.volatility)['total'] > 0:
                # The rewrite completed a run on a crossing line; show the real losing grid.
                logger.debug("Near miss on line %s would display a win; dropped.", near_miss['payline_index'])
                shown_grid, near_miss = spin_grid, None
            session.grid = shown_grid
            result = CascadeResult(
                initial_grid=initial_grid, grid=shown_grid.to_list(),
                near_miss=near_miss, config_version=config.version
            )
        else:
            session.enter(GameState.TUMBLING)
            # From here on the stake is spent; committed passes are paid, never refunded.
            resolution_started = True
            try:
                result, session.config = resolve_spin(spin_grid, bet, config, rng, on_step)
            except InternalInvariantViolationException as e:
                session.config = e.config or session.config
                _credit_winnings(session, e.partial_result, aborted=True)
                GameEventLogger.log_game_event(
                    'CASCADE_ABORTED', session.session_id, bet_amount=bet,
                    win_amount=e.partial_result.total_win, config_version=session.config.version,
                    details=e.details, level=logging.ERROR
                )
                raise

        _credit_winnings(session, result)
        GameEventLogger.log_game_event(
            'SPIN', session.session_id, bet_amount=bet, win_amount=result.total_win,
            config_version=session.config.version,
            details={'cascades': result.cascade_count, 'near_miss': result.near_miss is not None}
        )
        return result
    except Exception:
        if not resolution_started:
            session.credit += bet
            session.total_wagered -= bet
            session.spins -= 1
            logger.exception("Spin for session %s failed before resolution; stake refunded.", session.session_id)
        raise
    finally:
        session.enter(GameState.IDLE)


def _credit_winnings(session, result, aborted=False):
    session.last_result = result
    if result.total_win <= 0:
        return
    balance_before = session.credit
    session.credit += result.total_win
    session.total_won += result.total_win
    GameEventLogger.log_financial_event(
        'PAYOUT', session.session_id, amount=result.total_win,
        balance_before=balance_before, balance_after=session.credit,
        details={'cascades': result.cascade_count, 'aborted': aborted}
    )
