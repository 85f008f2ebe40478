"""
Tests for the randomized lending ledger simulation.
"""

import unittest
import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from ledger_parameters import LedgerParameters, LiquidationPolicy
from ledger_simulation import LedgerSimulation


class TestLedgerSimulation(unittest.TestCase):
    def test_market_simulation(self):
        """A year of random activity keeps the ledger solvent"""
        simulation = LedgerSimulation(num_borrowers=6, seed=1)
        results = simulation.simulate_market_scenario(365, step_hours=48, plot_results=False)

        self.assertIn('final_total_borrowed', results)
        self.assertIn('liquidations', results)
        self.assertTrue(results['solvent'])
        self.assertEqual(len(simulation.history), 365 * 24 // 48)
        self.assertTrue(simulation.ledger.store.is_consistent())

    def test_partial_policy_simulation(self):
        parameters = LedgerParameters(
            collateral_factor_bp=9_000,
            liquidation_threshold_bp=8_500,
            base_interest_rate_bp=8_000,
            liquidation_policy=LiquidationPolicy.PARTIAL_CAPPED,
        )
        simulation = LedgerSimulation(num_borrowers=4, seed=3, parameters=parameters)
        results = simulation.simulate_market_scenario(90, plot_results=False)

        self.assertTrue(results['solvent'])
        self.assertGreaterEqual(results['rejected'], 0)

    def test_same_seed_is_reproducible(self):
        first = LedgerSimulation(num_borrowers=3, seed=9).simulate_market_scenario(60, plot_results=False)
        second = LedgerSimulation(num_borrowers=3, seed=9).simulate_market_scenario(60, plot_results=False)
        self.assertEqual(first, second)


if __name__ == '__main__':
    unittest.main()
