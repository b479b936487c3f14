import logging
from typing import List

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from simulator import IDLE

IDLE_MARK = "-"


def _ids(threads):
    return "[" + ", ".join(str(t.thread_id) for t in threads) + "]"


class SimulationLog:
    """Trace sink for a simulation run.

    Every line is emitted at INFO on a dedicated logger, which writes to
    ``path`` when one is given. The logger does not propagate, so trace output
    never mixes with application logging. Lines are also kept in ``lines``
    when ``keep_lines`` is set; by default only when there is no file to read
    them back from.
    """

    def __init__(self, path=None, multiline=True, name="trace.sim_log", keep_lines=None):
        self.multiline = multiline
        self.keep_lines = path is None if keep_lines is None else keep_lines
        self.lines: List[str] = []
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        self._handler = None
        if path is not None:
            self._handler = logging.FileHandler(path, mode="w", encoding="utf-8")
            self._handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(self._handler)

    def _emit(self, text):
        for line in text.splitlines():
            if self.keep_lines:
                self.lines.append(line)
            self.logger.info(line)

    def close(self):
        if self._handler is not None:
            self.logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def workload(self, title, threads):
        self._emit(f"{title} ({len(threads)} threads)")
        for t in threads:
            self._emit(f"  tid={t.thread_id} arrival={t.arrival_time} burst={t.burst_time}")

    def interrupts_config(self, config):
        state = "on" if config.enabled else "off"
        self._emit(f"Random I/O interrupts: {state} probability={config.probability_percent}% "
                   f"duration=[{config.min_duration}, {config.max_duration}]")

    def snapshot(self, now, ready, waiting, cores, finished):
        core_cells = [IDLE_MARK if t is None else str(t.thread_id) for t in cores]
        if self.multiline:
            self._emit(
                f"t={now}\n"
                f"  ready:    {_ids(ready)}\n"
                f"  waiting:  {_ids(waiting)}\n"
                f"  cores:    [" + ", ".join(f"{i}:{c}" for i, c in enumerate(core_cells)) + "]\n"
                f"  finished: {_ids(finished)}")
        else:
            self._emit(f"t={now} ready={_ids(ready)} waiting={_ids(waiting)} "
                       f"cores=[{', '.join(core_cells)}] finished={_ids(finished)}")

    def io_event(self, now, core_index, thread, duration, unblock_time):
        self._emit(f"t={now} IO interrupt: core {core_index} thread {thread.thread_id} "
                   f"blocked for {duration} ticks (until t={unblock_time})")

    def io_complete(self, now, thread):
        self._emit(f"t={now} IO complete: thread {thread.thread_id} -> ready")

    def final_averages(self, threads):
        self._emit("Final per-thread results")
        for t in sorted(threads, key=lambda t: t.thread_id):
            self._emit(f"  tid={t.thread_id} arrival={t.arrival_time} burst={t.burst_time} "
                       f"start={t.start_time} finish={t.finish_time} wait={t.wait_time} "
                       f"response={t.response} turnaround={t.turnaround}")
        if not threads:
            self._emit("  no finished threads")
            return
        self._emit(f"Average wait: {np.mean([t.wait_time for t in threads]):.2f}")
        self._emit(f"Average response: {np.mean([t.response for t in threads]):.2f}")
        self._emit(f"Average turnaround: {np.mean([t.turnaround for t in threads]):.2f}")


def core_trace_frame(run_trace, ticks):
    """Per-core trace as a table: one row per core, one column per tick"""
    window = run_trace[:, :ticks]
    cells = np.where(window == IDLE, IDLE_MARK, window.astype(str))
    df = pd.DataFrame(cells, index=[f"core {c}" for c in range(window.shape[0])],
                      columns=range(window.shape[1]))
    df.columns.name = "tick"
    return df


def write_core_trace(run_trace, path="core_trace.txt", ticks=None):
    """Write the per-core trace as aligned text, one line per tick"""
    if ticks is None:
        ticks = run_trace.shape[1]
    df = core_trace_frame(run_trace, ticks).T
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(df.to_string())
        fh.write("\n")
    return path


def core_segments(run_trace, ticks):
    """Contiguous runs of the same thread on a core, idle stretches left out"""
    segments = []
    for core, row in enumerate(run_trace[:, :ticks]):
        if row.size == 0:
            continue
        boundaries = np.flatnonzero(np.diff(row)) + 1
        starts = np.concatenate(([0], boundaries))
        ends = np.concatenate((boundaries, [row.size]))
        for start, end in zip(starts, ends):
            if row[start] == IDLE:
                continue
            segments.append({"core": core, "thread": int(row[start]), "start": int(start), "end": int(end)})
    return pd.DataFrame(segments, columns=["core", "thread", "start", "end"])


def thread_frame(threads):
    rows = []
    for t in sorted(threads, key=lambda t: t.thread_id):
        rows.append({
            "Thread": t.thread_id,
            "Arrival": t.arrival_time,
            "Burst": t.burst_time,
            "Start": t.start_time,
            "Finish": t.finish_time,
            "Wait": t.wait_time,
            "Response": t.response,
            "Turnaround": t.turnaround,
            "Last Core": t.core_id,
            "State": t.state.name,
        })
    return pd.DataFrame(rows, columns=["Thread", "Arrival", "Burst", "Start", "Finish", "Wait",
                                       "Response", "Turnaround", "Last Core", "State"])


def plot_core_trace(run_trace, path, ticks, title="Per-core execution trace"):
    """Render the per-core trace as a Gantt chart and save it to path"""
    segments = core_segments(run_trace, ticks)
    num_cores = run_trace.shape[0]
    cmap = plt.get_cmap("tab20")

    fig, ax = plt.subplots(figsize=(max(6, min(ticks / 4, 40)), 1 + 0.6 * num_cores))
    for row in segments.itertuples(index=False):
        ax.broken_barh([(row.start, row.end - row.start)], (row.core - 0.4, 0.8),
                       facecolors=cmap(row.thread % 20), edgecolor="black", linewidth=0.3)
        if row.end - row.start >= 2 and len(segments) <= 200:
            ax.text((row.start + row.end) / 2, row.core, str(row.thread),
                    ha="center", va="center", fontsize=7)

    ax.set_yticks(range(num_cores))
    ax.set_yticklabels([f"Core {c}" for c in range(num_cores)])
    ax.set_xlim(0, max(ticks, 1))
    ax.set_xlabel("Tick")
    ax.set_title(title)
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path
