"""
Visualization simulation for the lending ledger.

This script runs a randomized year of borrowers against the ledger and plots
the totals, the depositor reserve and the weakest health factor.
"""

import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from ledger_simulation import LedgerSimulation


def run_visualization_simulation():
    simulation = LedgerSimulation(num_borrowers=10, seed=42)

    print("Running simulation with visualizations...")
    results = simulation.simulate_market_scenario(365, step_hours=24, plot_results=True)

    print("\nSimulation Results:")
    for key, value in results.items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    run_visualization_simulation()
