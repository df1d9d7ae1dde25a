import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_tiny_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "tiny", "--epochs", "2", "--run-dir", "out"])
    run_dir = Path("out")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "summary.json").exists()
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["epochs"] == 2


def test_cli_lists_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    assert "tiny" in capsys.readouterr().out.split()


def test_cli_merges_partial_override_and_dumps_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.json"
    override.write_text(json.dumps({"model": {"learning_rate": 0.05}}))
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "tiny",
            "--config",
            str(override),
            "--epochs",
            "1",
            "--seed",
            "4",
            "--run-dir",
            "run",
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["model"]["learning_rate"] == 0.05
    assert resolved["model"]["layers"] == [{"neurons": 16, "activation": "relu"}]
    assert resolved["train"]["seed"] == 4
    assert resolved["data"]["seed"] == 4
