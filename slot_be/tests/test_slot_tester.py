import unittest

from slot_be.utils.game_config_manager import GameConfig, GameConfigManager
from slot_be.utils.slot_tester import SlotTester


class TestSlotTester(unittest.TestCase):

    def test_default_game_simulation(self):
        tester = SlotTester(GameConfigManager.default_config(), num_spins=300, bet_amount=1, seed=42)
        summary = tester.run_simulation()

        self.assertEqual(summary['spins'], 300)
        self.assertEqual(summary['total_bet'], 300)
        self.assertEqual(summary['total_win'], sum(tester.wins_per_spin))
        self.assertEqual(sum(summary['cascade_depths'].values()), 300)
        self.assertGreaterEqual(summary['hit_frequency'], 0.0)
        self.assertLessEqual(summary['hit_frequency'], 1.0)
        self.assertGreater(summary['theoretical_rtp'], 0)
        self.assertAlmostEqual(summary['overall_rtp'], summary['total_win'] / 300)
        self.assertEqual(tester.session.spins, 300)
        self.assertEqual(len(tester.rtp_over_time), 10)

    def test_same_seed_same_run(self):
        config = GameConfigManager.default_config()
        first = SlotTester(config, num_spins=200, seed=7).run_simulation()
        second = SlotTester(config, num_spins=200, seed=7).run_simulation()
        self.assertEqual(first, second)

    def test_near_misses_only_on_losing_spins(self):
        config = GameConfigManager.default_config({'NEAR_MISS_FREQUENCY': 1.0})
        tester = SlotTester(config, num_spins=200, seed=3)
        summary = tester.run_simulation()
        losing = summary['spins'] - tester.hit_count
        # Crafted grids that would display a win on a crossing line are dropped.
        self.assertLessEqual(tester.near_miss_count, losing)
        self.assertGreater(tester.near_miss_count, 0)

    def test_aborted_cascades_are_counted(self):
        config = GameConfig(
            weights={"A": 1},
            paytable={"A": {3: 5, 4: 20, 5: 100}},
            paylines=[[0, 0, 0, 0, 0]],
            visible_rows=1,
            near_miss_frequency=0.0,
            drift_probability=0.0,
            max_cascade_iterations=2,
        )
        tester = SlotTester(config, num_spins=5, bet_amount=1, seed=1)
        summary = tester.run_simulation()
        self.assertEqual(summary['aborted_spins'], 5)
        self.assertEqual(summary['total_win'], 5 * 200)
        self.assertEqual(summary['cascade_depths'], {2: 5})
        self.assertEqual(summary['volatility_index'], 0.0)
        self.assertEqual(summary['max_win'], 200)


if __name__ == '__main__':
    unittest.main()
