import random

import pandas as pd

from simulator import AdmissionError, Thread

# (id, arrival, burst)
SMALL_PRESET = [
    (1, 0, 5),
    (2, 0, 3),
    (3, 2, 6),
    (4, 4, 4),
]

SCENARIOS = ["small", "random", "balanced", "bursty"]

# core count each scenario is meant to be run with when none is given
DEFAULT_CORES = {
    "small": 1,
    "random": 6,
    "balanced": 4,
    "bursty": 4,
}


class WorkloadError(AdmissionError):
    pass


def generate_workload(scenario="small", num_threads=2000, seed=None, max_arrival=300, burst_range=(1, 30)):
    """Build a list of (id, arrival, burst) entries for a named scenario.

    Ids run 1..N in generation order. Only the random scenarios use the seed.
    """
    rng = random.Random(seed)
    low, high = burst_range
    if low < 1 or high < low:
        raise WorkloadError(f"burst_range must satisfy 1 <= low <= high, got {burst_range}")

    if scenario == "small":
        return list(SMALL_PRESET)

    entries = []
    if scenario == "random":
        for i in range(1, num_threads + 1):
            entries.append((i, rng.randint(0, max_arrival), rng.randint(low, high)))

    elif scenario == "balanced":
        # one arrival per tick, short jobs
        for i in range(1, num_threads + 1):
            entries.append((i, i - 1, rng.randint(2, 5)))

    elif scenario == "bursty":
        # groups of five arriving close together every ten ticks
        for i in range(1, num_threads + 1):
            burst_start = ((i - 1) // 5) * 10
            entries.append((i, burst_start + rng.randint(0, 2), rng.randint(1, 4)))

    else:
        raise WorkloadError(f"unknown scenario {scenario!r}, expected one of {', '.join(SCENARIOS)}")

    return entries


def validate_entry(entry):
    try:
        thread_id, arrival, burst = entry
    except (TypeError, ValueError):
        raise WorkloadError(f"workload entry must be (id, arrival, burst), got {entry!r}") from None
    for name, value in (("id", thread_id), ("arrival", arrival), ("burst", burst)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise WorkloadError(f"{name} must be an integer in {entry!r}")
    if thread_id < 0:
        raise WorkloadError(f"thread id must be >= 0, got {thread_id}")
    if arrival < 0:
        raise WorkloadError(f"thread {thread_id}: arrival must be >= 0, got {arrival}")
    if burst <= 0:
        raise WorkloadError(f"thread {thread_id}: burst must be > 0, got {burst}")
    return thread_id, arrival, burst


def build_threads(entries):
    """Validate workload entries and turn them into NEW threads, keeping entry order"""
    threads = []
    seen = set()
    for entry in entries:
        thread_id, arrival, burst = validate_entry(entry)
        if thread_id in seen:
            raise WorkloadError(f"duplicate thread id {thread_id}")
        seen.add(thread_id)
        threads.append(Thread(thread_id, arrival, burst))
    return threads


def parse_workload_text(lines):
    """Manual entry: one "arrival burst" pair per line, ids assigned 1..N.

    Blank lines and lines starting with '#' are skipped.
    """
    entries = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        if len(parts) != 2:
            raise WorkloadError(f"line {lineno}: expected 'arrival burst', got {raw.rstrip()!r}")
        try:
            arrival, burst = int(parts[0]), int(parts[1])
        except ValueError:
            raise WorkloadError(f"line {lineno}: arrival and burst must be integers") from None
        entries.append(validate_entry((len(entries) + 1, arrival, burst)))
    if not entries:
        raise WorkloadError("workload contains no threads")
    return entries


def load_workload_csv(path):
    """Read entries from a CSV file with id, arrival and burst columns"""
    try:
        df = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise WorkloadError(f"{path}: {e}") from None
    missing = {"id", "arrival", "burst"} - set(df.columns)
    if missing:
        raise WorkloadError(f"{path}: missing column(s) {', '.join(sorted(missing))}")
    if df.empty:
        raise WorkloadError(f"{path}: workload contains no threads")
    if df[["id", "arrival", "burst"]].isnull().values.any():
        raise WorkloadError(f"{path}: empty cells in workload")
    if not all(pd.api.types.is_integer_dtype(df[col]) for col in ("id", "arrival", "burst")):
        raise WorkloadError(f"{path}: id, arrival and burst must be integers")

    return [validate_entry((int(row.id), int(row.arrival), int(row.burst)))
            for row in df.itertuples(index=False)]
