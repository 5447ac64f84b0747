# main.py
"""
Main entry point for the Particle Life simulation.

This script orchestrates the entire simulation lifecycle:
1. Loads configuration from `config.json` (or the path given as the
   first argument).
2. Initializes the logging system.
3. Builds the SimulationWorld.
4. Runs the main loop, headless or with the Pygame viewer.
5. Handles clean shutdown and prints a performance profile.
"""
import cProfile
import io
import logging
import pstats
import sys
from typing import Optional, Sequence

import numpy as np

from utils import setup_logging, load_simulation_config


def run(world, run_params, vis_params) -> int:
    """
    Drives the world until max_steps or until the viewer is closed.

    Returns:
        int: Number of steps performed.
    """
    log_throttle = run_params.get('log_throttle_steps', 100)
    max_steps = run_params.get('max_steps', 5000)

    visualizer = None
    if not run_params.get('headless', False):
        # Imported lazily so headless runs never need pygame.
        from visualization import Visualizer
        visualizer = Visualizer(world, colors=vis_params.get('particle_colors'))

    step_num = 0
    try:
        while step_num < max_steps:
            world.advance()
            step_num += 1

            if visualizer is not None and not visualizer.draw():
                break

            # Hot loops must throttle logs
            if step_num % log_throttle == 0:
                logging.info(f"Simulation step {step_num}/{max_steps}")
                snapshot = world.snapshot()
                if len(snapshot):
                    avg_velocity = np.mean(np.linalg.norm(snapshot.velocities, axis=1))
                    logging.debug(f"Step {step_num} | Average Velocity: {avg_velocity:.4f}")
        else:
            logging.info(f"Reached max_steps ({max_steps}). Stopping simulation.")
    finally:
        if visualizer is not None:
            visualizer.close()
    return step_num


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    The main function to run the simulation.
    """
    argv = sys.argv[1:] if argv is None else argv
    config_path = argv[0] if argv else 'config.json'

    # Logging is not set up yet, so we use a print for this one error.
    try:
        config, sim_config = load_simulation_config(config_path)
    except Exception as e:
        print(f"FATAL: Could not load {config_path}. Error: {e}")
        return 1

    setup_logging(config)
    logging.info("--- Particle Life Simulation Starting ---")

    run_params = config.get('run_control', {})
    vis_params = config.get('visualization', {})

    from simulation import SimulationWorld
    world = SimulationWorld(sim_config)

    profiler = cProfile.Profile() if run_params.get('profile', True) else None
    if profiler is not None:
        profiler.enable()
    run(world, run_params, vis_params)
    if profiler is not None:
        profiler.disable()
    logging.info("Simulation loop finished.")

    if profiler is not None:
        logging.info("--- Performance Profile ---")
        s = io.StringIO()
        # Sort by cumulative time spent in the function
        stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
        stats.print_stats(20)
        logging.info(f"\n{s.getvalue()}")

    logging.info("--- Particle Life Simulation Shutting Down ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
