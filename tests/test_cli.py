import json

import pytest

from buzen.cli import DEFAULT_CONFIG, load_config, main, report_markdown, run


def test_load_config_merges_over_defaults(tmp_path):
    path = tmp_path / "net.json"
    path.write_text(json.dumps({"network": {"population": 7}, "numerics": {"policy": "log"}}))
    cfg = load_config(str(path))
    assert cfg["network"]["population"] == 7
    assert cfg["network"]["queues"] == DEFAULT_CONFIG["network"]["queues"]
    assert cfg["numerics"]["policy"] == "log"
    assert cfg["numerics"]["rescale_threshold"] == 1e100
    # defaults are not mutated
    assert DEFAULT_CONFIG["network"]["population"] == 3


def test_run_default_network():
    report = run(load_config(None))
    assert report["normalization"]["g"] == [1.0, 5.0, 19.0, 65.0]
    assert report["summary"]["total_expected_length"] == pytest.approx(3.0)
    assert set(report["queue_length_distributions"]) == {"cpu", "disk"}
    assert "simulation" not in report
    md = report_markdown(report)
    assert "## Per-Queue Metrics" in md
    assert "| cpu |" in md


def test_main_writes_reports(tmp_path, capsys):
    out = tmp_path / "out"
    rc = main(["--population", "4", "--policy", "rescale", "--output-dir", str(out)])
    assert rc == 0
    data = json.loads((out / "report.json").read_text())
    assert data["summary"]["population"] == 4
    assert data["summary"]["policy"] == "rescale"
    assert "log_g" in data["normalization"]
    assert (out / "report.md").exists()
    assert "Wrote JSON report" in capsys.readouterr().out


def test_main_with_simulation(tmp_path):
    cfg_path = tmp_path / "net.json"
    cfg_path.write_text(json.dumps({
        "network": {"population": 2, "queues": [{"name": "a", "service_time": 1.0}, {"name": "b", "service_time": 2.0}]},
        "simulation": {"duration": 500.0, "warmup": 50.0},
        "reporting": {"writers": ["json"]},
    }))
    out = tmp_path / "out"
    rc = main(["--config", str(cfg_path), "--simulate", "--seed", "5", "--output-dir", str(out)])
    assert rc == 0
    data = json.loads((out / "report.json").read_text())
    assert set(data["comparison"]) == {"a", "b"}
    assert data["simulation"]["summary"]["population"] == 2
    assert not (out / "report.md").exists()


def test_main_reports_model_errors(tmp_path, capsys):
    cfg_path = tmp_path / "bad.json"
    cfg_path.write_text(json.dumps({"network": {"population": 2, "queues": [{"load": -1.0}]}}))
    rc = main(["--config", str(cfg_path), "--output-dir", str(tmp_path / "out")])
    assert rc == 2
    assert "error:" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_main_rejects_null_rescale_threshold(tmp_path, capsys):
    cfg_path = tmp_path / "null.json"
    cfg_path.write_text(json.dumps({"numerics": {"policy": "rescale", "rescale_threshold": None}}))
    rc = main(["--config", str(cfg_path), "--output-dir", str(tmp_path / "out")])
    assert rc == 2
    assert "rescale_threshold" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()
