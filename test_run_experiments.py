import pytest

from run_experiments import main


def test_compares_all_policies_on_small_preset(capsys):
    main([])
    out = capsys.readouterr().out
    assert "Simulated 4 threads on 1 core(s)" in out
    for label in ("FIFO", "SJF (non-preemptive)", "SRTCF (preemptive SRTF)"):
        assert label in out


def test_writes_outputs_per_policy(tmp_path, capsys):
    main(["--policy", "srtcf", "--cores", "2", "--scenario", "random", "--threads", "40",
          "--interrupts", "--log", str(tmp_path / "sim_log.txt"), "--trace", str(tmp_path / "core_trace.txt"),
          "--show-threads"])
    assert (tmp_path / "sim_log.txt").read_text().startswith("Workload before simulation (40 threads)")
    assert (tmp_path / "core_trace.txt").exists()
    assert "Turnaround" in capsys.readouterr().out


def test_multiple_policies_get_separate_logs(tmp_path):
    main(["--log", str(tmp_path / "sim_log.txt")])
    for name in ("fifo", "sjf", "srtcf"):
        assert (tmp_path / f"sim_log_{name}.txt").exists()


def test_workload_text_file(tmp_path, capsys):
    path = tmp_path / "workload.txt"
    path.write_text("0 5\n0 3\n")
    main(["--workload-file", str(path), "--policy", "fifo"])
    assert "Simulated 2 threads" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [
    ["--cores", "0"],
    ["--interrupts", "--io-min", "5", "--io-max", "2"],
])
def test_invalid_configuration_is_a_usage_error(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 2
    assert "error:" in capsys.readouterr().err


@pytest.mark.parametrize("content", ["", "id,arrival,burst\n"])
def test_empty_workload_csv_is_a_usage_error(tmp_path, content, capsys):
    path = tmp_path / "workload.csv"
    path.write_text(content)
    with pytest.raises(SystemExit) as excinfo:
        main(["--workload-file", str(path)])
    assert excinfo.value.code == 2
    assert "workload.csv" in capsys.readouterr().err
