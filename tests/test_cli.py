"""Smoke test for the run script."""

import importlib.util
import json
from pathlib import Path

import pandas as pd

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "main.py"


def load_main():
    spec = importlib.util.spec_from_file_location("fabricsim_main_script", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module.main


def test_main_writes_outputs(tmp_path):
    main = load_main()

    code = main([
        "--ticks", "60",
        "--workers", "2",
        "--seed", "5",
        "--attacker", "66.66.66.66",
        "--attack_share", "0.3",
        "--log_level", "WARNING",
        "--out_dir", str(tmp_path),
        "--skip_plot",
    ])

    assert code == 0
    report = json.loads((tmp_path / "report.json").read_text())
    assert report["report"]["ticks"] == 60
    assert report["config"]["attacker_addresses"] == ["66.66.66.66"]
    history = pd.read_csv(tmp_path / "dispatch_history.csv")
    assert len(history) == 120
    assert set(history["job_class"]) == {"A", "B"}
    assert (tmp_path / "events.csv").exists()
