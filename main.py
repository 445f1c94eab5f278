"""
Geneuron - headless runner

Usage:
    python main.py
    python main.py --config my_config.json --seed 7 --duration 300
    python main.py --width 1200 --height 900 --no-log
"""

import argparse
import sys
import time


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Geneuron - neuroevolution sandbox on a toroidal plane (headless)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                  Default world, 600 s of simulated time
  python main.py --config my_config.json          Load settings from JSON
  python main.py --duration 120 --dt 0.05         Short run with a coarser step
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to JSON config file (default: built-in defaults)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override random seed (overrides config value)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Simulated seconds to run (overrides run.duration)",
    )
    parser.add_argument(
        "--dt",
        type=float,
        default=None,
        help="Time step in seconds (overrides run.dt)",
    )
    parser.add_argument(
        "--width",
        type=float,
        default=None,
        help="Plane width (overrides world.width)",
    )
    parser.add_argument(
        "--height",
        type=float,
        default=None,
        help="Plane height (overrides world.height)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Override output directory",
    )
    parser.add_argument(
        "--no-log",
        action="store_true",
        help="Don't create a run directory or write metrics",
    )

    return parser.parse_args(argv)


def run_headless(args: argparse.Namespace) -> int:
    """Run one headless simulation. Returns a process exit code."""
    from geneuron.core.config import get_default_config, load_config
    from geneuron.simulation.engine import Simulation
    from geneuron.simulation.metrics import MetricsCollector
    from geneuron.logging.run_manager import RunManager

    try:
        config = load_config(args.config) if args.config else get_default_config()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    if args.output is not None:
        config.run.output_dir = args.output
    if args.duration is not None:
        config.run.duration = args.duration
    if args.dt is not None:
        config.run.dt = args.dt

    try:
        sim = Simulation(args.width, args.height, config=config, seed=args.seed)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    config = sim.config

    print("[Geneuron] Headless run")
    print(f"  Config: {args.config or '(defaults)'}")
    print(f"  Plane: {config.world.width:g}x{config.world.height:g}")
    print(f"  Population: {config.population.initial_count} "
          f"(floor {config.population.floor}, ceiling {config.population.ceiling})")
    print(f"  Seed: {config.world.seed}")
    print(f"  Duration: {config.run.duration:g}s at dt={config.run.dt:.4f}")
    if not args.no_log:
        print(f"  Output: {config.run.output_dir}")
    print()

    metrics = MetricsCollector(config)
    run_manager = None if args.no_log else RunManager(config)

    def on_generation(generation: int, s: Simulation) -> None:
        kpis = metrics.collect(s, s.get_accumulated_stats())
        s.reset_accumulated_stats()
        if run_manager is not None:
            run_manager.log_generation(kpis)
        print(
            f"  Gen {generation:4d} | t={kpis['elapsed_time']:8.1f}s | "
            f"Pop: {kpis['agent_count']:4d} | Births: {kpis['births']:4d} | "
            f"Deaths: {kpis['deaths_total']:4d} | Avg Energy: {kpis['avg_energy']:.3f} | "
            f"Diversity: {kpis['genetic_diversity']:.3f}"
        )

    sim.on_generation = on_generation

    start_time = time.time()
    result = sim.run()
    wall = time.time() - start_time

    print()
    print("[Result]")
    print(f"  Ticks: {result.total_ticks}")
    print(f"  Simulated time: {result.elapsed_time:.1f}s")
    print(f"  Generation: {result.final_generation}")
    print(f"  Final population: {result.final_agent_count}")
    print(f"  Births: {result.total_births}  Deaths: {result.total_deaths}")
    print(f"  Extinct: {result.extinct}")
    print(f"  Elapsed: {wall:.1f}s")

    if run_manager is not None:
        run_manager.finalize(result, wall)
        print(f"  Output saved to: {run_manager.run_dir}")

    return 0


def main(argv=None) -> None:
    args = parse_args(argv)
    sys.exit(run_headless(args))


if __name__ == "__main__":
    main()
