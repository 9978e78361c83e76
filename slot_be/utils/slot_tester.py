import argparse
import json
import random

import numpy as np

from slot_be.exceptions import InternalInvariantViolationException
from slot_be.utils.game_config_manager import GameConfigManager
from slot_be.utils.game_state import GameSession
from slot_be.utils.spin_handler import handle_spin


class SlotTester:
    """
    Plays a configuration many times and collects empirical statistics.

    The simulated session always has enough credit for every spin, so the run length
    is exactly `num_spins`.
    """

    def __init__(self, config, num_spins, bet_amount=1, seed=None):
        self.config = config
        self.num_spins = num_spins
        self.bet_amount = bet_amount
        self.rng = random.Random(seed)
        self.session = None

        # Statistics to be collected
        self.total_bet = 0
        self.total_win = 0
        self.hit_count = 0
        self.near_miss_count = 0
        self.aborted_count = 0
        self.max_win = 0
        self.wins_per_spin = []
        self.cascade_depths = {}  # passes -> number of spins
        self.wins_by_multiplier = {}
        self.rtp_over_time = []

        # Derived statistics
        self.overall_rtp = 0.0
        self.hit_frequency = 0.0
        self.near_miss_frequency = 0.0
        self.volatility_index = 0.0
        self.mean_cascade_depth = 0.0
        self.theoretical_rtp = config.theoretical_rtp()

    def initialize_simulation_state(self):
        # One bet per spin plus headroom; payouts only ever add to the balance.
        self.session = GameSession(
            config=self.config, credit=self.num_spins * self.bet_amount, bet=self.bet_amount,
            session_id='slot-tester'
        )

    def run_simulation(self):
        if self.session is None:
            self.initialize_simulation_state()

        checkpoint = max(1, self.num_spins // 10)
        for i in range(self.num_spins):
            self._simulate_one_spin()
            if (i + 1) % checkpoint == 0:
                self.rtp_over_time.append({
                    'spin_count': i + 1,
                    'rtp': self.total_win / self.total_bet if self.total_bet else 0.0,
                })

        self.calculate_derived_statistics()
        return self.summary()

    def _simulate_one_spin(self):
        self.total_bet += self.bet_amount
        try:
            result = handle_spin(self.session, rng=self.rng)
        except InternalInvariantViolationException as e:
            self.aborted_count += 1
            result = e.partial_result
        self._collect_spin_statistics(result)

    def _collect_spin_statistics(self, result):
        win = result.total_win
        self.total_win += win
        self.wins_per_spin.append(win)
        depth = result.cascade_count
        self.cascade_depths[depth] = self.cascade_depths.get(depth, 0) + 1
        if result.near_miss is not None:
            self.near_miss_count += 1
        if win > 0:
            self.hit_count += 1
            self.max_win = max(self.max_win, win)
            multiplier = win // self.bet_amount
            self.wins_by_multiplier[multiplier] = self.wins_by_multiplier.get(multiplier, 0) + 1

    def calculate_derived_statistics(self):
        if not self.wins_per_spin:
            return

        spins = len(self.wins_per_spin)
        self.overall_rtp = self.total_win / self.total_bet if self.total_bet else 0.0
        self.hit_frequency = self.hit_count / spins
        self.near_miss_frequency = self.near_miss_count / spins

        wins = np.array(self.wins_per_spin, dtype=float)
        self.volatility_index = float(np.std(wins) / self.bet_amount) if self.bet_amount > 0 else 0.0
        depths = np.array(list(self.cascade_depths.keys()), dtype=float)
        counts = np.array(list(self.cascade_depths.values()), dtype=float)
        self.mean_cascade_depth = float(np.average(depths, weights=counts))

    def summary(self):
        return {
            'spins': len(self.wins_per_spin),
            'bet_amount': self.bet_amount,
            'total_bet': self.total_bet,
            'total_win': self.total_win,
            'overall_rtp': self.overall_rtp,
            'theoretical_rtp': self.theoretical_rtp,
            'hit_frequency': self.hit_frequency,
            'near_miss_frequency': self.near_miss_frequency,
            'volatility_index': self.volatility_index,
            'max_win': self.max_win,
            'mean_cascade_depth': self.mean_cascade_depth,
            'cascade_depths': dict(sorted(self.cascade_depths.items())),
            'wins_by_multiplier': dict(sorted(self.wins_by_multiplier.items())),
            'aborted_spins': self.aborted_count,
            'final_config_version': self.session.config.version if self.session else self.config.version,
        }

    def print_summary_statistics(self):
        print("\n--- Simulation Summary ---")
        print(f"Total Spins Simulated: {len(self.wins_per_spin)}")
        print(f"Bet Amount Per Spin: {self.bet_amount}")
        print(f"Total Wagered: {self.total_bet}")
        print(f"Total Won: {self.total_win}")

        print("\n--- Detailed Metrics ---")
        print(f"Empirical RTP: {self.overall_rtp * 100:.2f}% (single-evaluation theoretical: {self.theoretical_rtp * 100:.2f}%)")
        print(f"Hit Frequency: {self.hit_frequency * 100:.2f}% ({self.hit_count} wins out of {len(self.wins_per_spin)} spins)")
        print(f"Near-Miss Frequency: {self.near_miss_frequency * 100:.2f}%")
        print(f"Volatility Index (Win StdDev / Bet): {self.volatility_index:.2f}")
        print(f"Max Win: {self.max_win}")
        print(f"Mean Cascade Depth: {self.mean_cascade_depth:.3f}")
        if self.aborted_count:
            print(f"Aborted Cascades: {self.aborted_count}")

        print("\nCascade Depth Distribution:")
        for depth, count in sorted(self.cascade_depths.items()):
            print(f"  {depth} passes: {count} spins")


def main():
    parser = argparse.ArgumentParser(description="Slot Tester - Simulates cascade play to analyze RTP and other metrics.")
    parser.add_argument("--config", type=str, default=None, help="Path to a JSON game configuration. Defaults to the built-in game.")
    parser.add_argument("--num_spins", type=int, default=10000, help="Number of spins to simulate.")
    parser.add_argument("--bet_amount", type=int, default=1, help="Bet amount for each spin.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible run.")
    parser.add_argument("--json", action="store_true", help="Print the summary as JSON.")

    args = parser.parse_args()

    config = GameConfigManager.load_from_file(args.config) if args.config else GameConfigManager.default_config()
    tester = SlotTester(config, num_spins=args.num_spins, bet_amount=args.bet_amount, seed=args.seed)
    summary = tester.run_simulation()
    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        tester.print_summary_statistics()


if __name__ == "__main__":
    main()
