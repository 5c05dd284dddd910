"""The results summary script."""
import importlib.util
import json
import sys
from pathlib import Path

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "view_results.py"


def load_script():
    spec = importlib.util.spec_from_file_location("view_results", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_bare_list_results_file(tmp_path, monkeypatch, capsys):
    results = [
        {"question_id": "photoshop-1", "response_text": "I recommend Adobe Photoshop.", "extraction_method": "primary_selector"},
        {"question_id": "express-1", "error": "timeout", "extraction_method": "error_fallback"},
    ]
    (tmp_path / "test-results.json").write_text(json.dumps(results), encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["view_results.py", str(tmp_path)])

    # no metadata, so validation reports problems instead of crashing
    assert load_script().main() == 1
    out = capsys.readouterr().out
    assert "successful: 1, failed: 1" in out
    assert "metadata has no total_results" in out


def test_empty_results_dir(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["view_results.py", str(tmp_path)])
    assert load_script().main() == 0
    assert "No results under" in capsys.readouterr().out
