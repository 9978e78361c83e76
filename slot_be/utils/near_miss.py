import logging
import secrets

from slot_be.utils.grid import Grid

logger = logging.getLogger(__name__)

# Reels that show the teased symbol; every later reel shows the filler.
NEAR_MISS_MATCHED_REELS = 2


def evaluate_near_miss(grid, paylines, frequency, rng=None, symbols=None, near_symbols=None):
    """
    Dresses a losing grid up as a "2 matched, 3rd different" near miss.

    Only call this for a spin whose unmodified evaluation paid nothing. The returned grid is
    cosmetic and must never be evaluated for wins. Rewriting one line can complete a run on a
    crossing line; callers that know the paytable should drop such a grid (see handle_spin).

    Args:
        grid (Grid | list): the settled, losing grid (`grid[reel][row]`).
        paylines (list[list[int]]): row index per reel for every line.
        frequency (float): probability of crafting a near miss at all.
        rng: random.Random compatible source.
        symbols (list): alphabet in its canonical order; the filler is the symbol after the teased one.
        near_symbols (list): symbols allowed to be teased (low/mid tier only).

    Returns:
        tuple: (grid, info). `grid` is a mutated copy when a near miss was applied, the input
        grid otherwise; `info` is None when nothing was applied.
    """
    rng = rng or secrets.SystemRandom()
    if not isinstance(grid, Grid):
        grid = Grid(grid)

    if not paylines or frequency <= 0:
        return grid, None
    if rng.random() >= frequency:
        return grid, None

    alphabet = list(symbols) if symbols else sorted({cell for column in grid for cell in column})
    candidates = list(near_symbols) if near_symbols else alphabet
    if len(alphabet) < 2 or not candidates:
        return grid, None

    line_index = rng.randrange(len(paylines))
    line = paylines[line_index]
    teased = rng.choice(candidates)
    position = alphabet.index(teased) if teased in alphabet else -1
    filler = alphabet[(position + 1) % len(alphabet)]

    mutated = grid.copy()
    for reel, row in enumerate(line[:mutated.reel_count]):
        mutated.set_cell(reel, row, teased if reel < NEAR_MISS_MATCHED_REELS else filler)

    info = {'payline_index': line_index, 'line': list(line), 'symbol': teased, 'filler': filler}
    logger.debug("Near miss applied: %s", info)
    return mutated, info
