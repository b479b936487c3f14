import numpy as np

from policies import FifoPolicy
from reporting import (
    SimulationLog,
    core_segments,
    core_trace_frame,
    plot_core_trace,
    thread_frame,
    write_core_trace,
)
from simulator import IDLE, InterruptConfig, Simulator
from workload import SMALL_PRESET, build_threads


def run_small(num_cores=2, log=None):
    sim = Simulator(num_cores=num_cores, scheduling_policy=FifoPolicy(), log=log, max_ticks=100)
    sim.load_threads(build_threads(SMALL_PRESET))
    sim.run()
    return sim


def test_core_trace_frame_marks_idle_ticks():
    trace = np.array([[1, 1, IDLE], [IDLE, 2, 2]])
    df = core_trace_frame(trace, 3)
    assert list(df.index) == ["core 0", "core 1"]
    assert df.loc["core 0"].tolist() == ["1", "1", "-"]
    assert df.loc["core 1"].tolist() == ["-", "2", "2"]


def test_core_segments_splits_runs():
    trace = np.array([[1, 1, 3, IDLE, 1], [IDLE, IDLE, IDLE, IDLE, IDLE]])
    segments = core_segments(trace, 5)
    assert segments.to_dict("records") == [
        {"core": 0, "thread": 1, "start": 0, "end": 2},
        {"core": 0, "thread": 3, "start": 2, "end": 3},
        {"core": 0, "thread": 1, "start": 4, "end": 5},
    ]


def test_write_core_trace_covers_every_tick(tmp_path):
    sim = run_small()
    path = write_core_trace(sim.run_trace, tmp_path / "core_trace.txt", sim.ticks_traced)
    lines = path.read_text().splitlines()
    assert "core 0" in lines[0] and "core 1" in lines[0]
    # header, index name row, then one row per tick
    assert len(lines) == 2 + sim.ticks_traced


def test_simulation_log_writes_file_and_keeps_lines(tmp_path):
    path = tmp_path / "sim_log.txt"
    with SimulationLog(path, name="trace.test_file", keep_lines=True) as log:
        run_small(log=log)
    text = path.read_text()
    assert text.splitlines() == log.lines
    assert log.lines[0] == "Workload before simulation (4 threads)"
    assert "Random I/O interrupts: off" in text
    assert "  cores:    [0:1, 1:2]" in log.lines
    assert "Average wait: 0.50" in log.lines


def test_file_backed_log_does_not_hold_lines(tmp_path):
    path = tmp_path / "sim_log.txt"
    with SimulationLog(path, name="trace.test_file_only") as log:
        run_small(log=log)
    assert log.lines == []
    assert path.read_text().startswith("Workload before simulation (4 threads)")


def test_single_line_snapshot():
    log = SimulationLog(multiline=False, name="trace.test_single")
    run_small(num_cores=1, log=log)
    assert "t=0 ready=[2] waiting=[] cores=[1] finished=[]" in log.lines


def test_interrupts_config_line():
    log = SimulationLog(name="trace.test_config")
    log.interrupts_config(InterruptConfig(enabled=True, probability_percent=10, min_duration=2, max_duration=6))
    assert log.lines == ["Random I/O interrupts: on probability=10% duration=[2, 6]"]


def test_thread_frame_reports_metrics():
    sim = run_small(num_cores=1)
    df = thread_frame(sim.threads.values())
    assert df["Thread"].tolist() == [1, 2, 3, 4]
    assert df["Finish"].tolist() == [5, 8, 14, 18]
    assert df["Turnaround"].tolist() == [5, 8, 12, 14]
    assert df["Wait"].tolist() == [0, 5, 6, 10]
    assert set(df["State"]) == {"FINISHED"}


def test_plot_core_trace_writes_png(tmp_path):
    sim = run_small()
    path = plot_core_trace(sim.run_trace, tmp_path / "trace.png", sim.ticks_traced)
    assert path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
