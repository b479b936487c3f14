import argparse
import logging
import random
from pathlib import Path
from typing import Optional, Sequence

from policies import get_policy, policy_names
from reporting import SimulationLog, plot_core_trace, thread_frame, write_core_trace
from simulator import MAX_TICKS, InterruptConfig, SimulationError, Simulator
from workload import (
    DEFAULT_CORES,
    SCENARIOS,
    build_threads,
    generate_workload,
    load_workload_csv,
    parse_workload_text,
)

logger = logging.getLogger("run_experiments")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the multi-core CPU scheduling simulator.")
    parser.add_argument("--policy", choices=policy_names() + ["all"], default="all",
                        help="Dispatch policy to simulate, or 'all' to compare them.")
    parser.add_argument("--scenario", choices=SCENARIOS, default="small", help="Preset workload.")
    parser.add_argument("--workload-file", type=Path,
                        help="Workload file: .csv with id,arrival,burst columns, otherwise 'arrival burst' lines.")
    parser.add_argument("--threads", type=int, default=2000, help="Number of threads for generated scenarios.")
    parser.add_argument("--cores", type=int, help="Number of CPU cores (defaults to the scenario's core count).")
    parser.add_argument("--seed", type=int, default=42, help="Seed for workload generation and interrupts.")
    parser.add_argument("--interrupts", action="store_true", help="Enable random I/O interrupts.")
    parser.add_argument("--io-pct", type=int, default=10, help="Per-tick interrupt probability (percent).")
    parser.add_argument("--io-min", type=int, default=2, help="Minimum I/O duration in ticks.")
    parser.add_argument("--io-max", type=int, default=6, help="Maximum I/O duration in ticks.")
    parser.add_argument("--max-ticks", type=int, default=MAX_TICKS, help="Tick ceiling for the run.")
    parser.add_argument("--log", type=Path, help="Write the per-tick trace log to this file.")
    parser.add_argument("--single-line", action="store_true", help="One line per tick snapshot in the log.")
    parser.add_argument("--trace", type=Path, help="Write the per-core execution trace to this file.")
    parser.add_argument("--plot", type=Path, help="Save a per-core Gantt chart (PNG) to this file.")
    parser.add_argument("--show-threads", action="store_true", help="Print the per-thread result table.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging of every scheduling decision.")
    return parser


def load_entries(args):
    if args.workload_file is None:
        return generate_workload(args.scenario, num_threads=args.threads, seed=args.seed)
    if args.workload_file.suffix.lower() == ".csv":
        return load_workload_csv(args.workload_file)
    with open(args.workload_file, encoding="utf-8") as fh:
        return parse_workload_text(fh)


def _per_policy(path: Optional[Path], policy_name, multiple):
    if path is None or not multiple:
        return path
    return path.with_name(f"{path.stem}_{policy_name}{path.suffix}")


def run_policy(policy_name, entries, args, multiple=False):
    num_cores = args.cores if args.cores is not None else DEFAULT_CORES.get(args.scenario, 1)
    interrupts = InterruptConfig(enabled=args.interrupts, probability_percent=args.io_pct,
                                 min_duration=args.io_min, max_duration=args.io_max)
    log_path = _per_policy(args.log, policy_name, multiple)
    log = SimulationLog(log_path, multiline=not args.single_line, name=f"trace.{policy_name}")

    try:
        sim = Simulator(num_cores=num_cores, scheduling_policy=get_policy(policy_name),
                        interrupts=interrupts, rng=random.Random(args.seed), log=log,
                        max_ticks=args.max_ticks, verbose=args.verbose)
        sim.load_threads(build_threads(entries))
        result = sim.run()
    finally:
        log.close()

    trace_path = _per_policy(args.trace, policy_name, multiple)
    if trace_path is not None:
        write_core_trace(sim.run_trace, trace_path, sim.ticks_traced)
        print(f"Wrote per-core trace to {trace_path}")
    plot_path = _per_policy(args.plot, policy_name, multiple)
    if plot_path is not None:
        plot_core_trace(sim.run_trace, plot_path, sim.ticks_traced, title=sim.policy.label)
        print(f"Wrote per-core chart to {plot_path}")
    return sim, result


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    selected = policy_names() if args.policy == "all" else [args.policy]
    try:
        entries = load_entries(args)
        runs = [(name, *run_policy(name, entries, args, multiple=len(selected) > 1)) for name in selected]
    except (SimulationError, OSError) as e:
        parser.error(str(e))

    print(f"\nSimulated {len(entries)} threads on {runs[0][1].cores.num_cores} core(s)\n")
    header_fmt = "{:<26} {:>9} {:>9} {:>11} {:>7} {:>8} {:>11} {:>10}"
    row_fmt = "{:<26} {:>9.2f} {:>9.2f} {:>11.2f} {:>7d} {:>8.1%} {:>11d} {:>10d}"
    print(header_fmt.format("Policy", "AvgWait", "AvgResp", "AvgTurnarnd", "Ticks", "Util",
                            "Preemptions", "Interrupts"))
    for name, sim, result in runs:
        print(row_fmt.format(sim.policy.label, result["avg_wait"], result["avg_response"],
                             result["avg_turnaround"], result["total_ticks"], result["avg_utilization"],
                             result["total_preemptions"], result["total_interrupts"]))

    if args.show_threads:
        for name, sim, _ in runs:
            print(f"\n{sim.policy.label}")
            print(thread_frame(sim.threads.values()).to_string(index=False))


if __name__ == "__main__":
    main()
