"""Tests for inventory file I/O, configuration and the CLI."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from edgar_trim import config
from edgar_trim.cli import main
from edgar_trim.config import Settings
from edgar_trim.models import FactsInventory
from edgar_trim.trim import load_inventory, output_path, trim_file

INVENTORY = {
    "ticker": "TEST",
    "factsIndex": [
        {"frame": "CY2024", "start": "2024-01-01", "end": "2024-12-31",
         "tags": {"Revenues": 400}},
        {"frame": "2024-01-01_2024-09-30", "start": "2024-01-01", "end": "2024-09-30",
         "tags": {"Revenues": 280}},
    ],
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("FISCAL_YEAR_END", "OUTPUT_SUFFIX", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "_config", None)


def _write(tmp_path, data, name="TEST.json"):
    path = tmp_path / name
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return path


def _labels(path):
    return {f["frame"] for f in json.loads(path.read_text())["frames"]}


# --- Paths ---


def test_output_path():
    assert output_path("data/AAPL.json") == Path("data/AAPL-trimmed.json")
    assert output_path("data/AAPL.JSON") == Path("data/AAPL-trimmed.json")
    assert output_path("inventory") == Path("inventory-trimmed.json")
    assert output_path("AAPL.json", "-out.json") == Path("AAPL-out.json")


# --- Loading ---


def test_load_inventory(tmp_path):
    inv = load_inventory(_write(tmp_path, INVENTORY))
    assert isinstance(inv, FactsInventory)
    assert inv.ticker == "TEST"
    assert len(inv.facts_index) == 2
    assert inv.fiscal_year_end is None


def test_load_rejects_malformed_json(tmp_path):
    with pytest.raises(ValueError, match="not valid JSON"):
        load_inventory(_write(tmp_path, "{not json"))


def test_load_rejects_missing_keys(tmp_path):
    with pytest.raises(ValueError, match="factsIndex"):
        load_inventory(_write(tmp_path, {"ticker": "TEST"}))
    with pytest.raises(ValueError, match="ticker"):
        load_inventory(_write(tmp_path, {"factsIndex": []}))
    with pytest.raises(ValueError, match="JSON object"):
        load_inventory(_write(tmp_path, [1, 2]))


def test_load_rejects_bad_fiscal_year_end(tmp_path):
    with pytest.raises(ValueError, match="invalid inventory"):
        load_inventory(_write(tmp_path, {**INVENTORY, "fiscalYearEnd": "1340"}))


def test_load_missing_file(tmp_path):
    with pytest.raises(OSError):
        load_inventory(tmp_path / "nope.json")


# --- trim_file ---


def test_trim_file_writes_camel_case_output(tmp_path):
    out = trim_file(_write(tmp_path, INVENTORY), Settings(fiscal_year_end="1231"))
    assert out.name == "TEST-trimmed.json"
    doc = json.loads(out.read_text())
    assert doc["ticker"] == "TEST"
    q4 = next(f for f in doc["frames"] if f["frame"] == "FY2024Q4")
    assert q4["pl"]["revenue"] == 120
    assert "grossProfit" in q4["pl"]
    assert q4["source"] == "derived_delta"
    assert q4["start"] == "2024-09-30"


def test_failed_run_writes_nothing(tmp_path):
    path = _write(tmp_path, {"ticker": "TEST"})
    with pytest.raises(ValueError):
        trim_file(path, Settings())
    assert not (tmp_path / "TEST-trimmed.json").exists()


# --- Configuration ---


def test_settings_defaults():
    settings = Settings()
    assert settings.fiscal_year_end == "0930"
    assert settings.output_suffix == "-trimmed.json"
    assert settings.log_level == "WARNING"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("FISCAL_YEAR_END", ' "1231" ')
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = Settings()
    assert settings.fiscal_year_end == "1231"
    assert settings.log_level == "DEBUG"


def test_settings_reject_bad_values(monkeypatch):
    monkeypatch.setenv("FISCAL_YEAR_END", "9999")
    with pytest.raises(ValidationError):
        Settings()
    monkeypatch.setenv("FISCAL_YEAR_END", "1231")
    monkeypatch.setenv("LOG_LEVEL", "LOUD")
    with pytest.raises(ValidationError):
        Settings()


@pytest.mark.parametrize("suffix", ["", "  ", ".json", ".JSON"])
def test_settings_reject_suffix_that_overwrites_input(monkeypatch, suffix):
    monkeypatch.setenv("OUTPUT_SUFFIX", suffix)
    with pytest.raises(ValidationError):
        Settings()


def test_settings_read_dotenv(tmp_path):
    (tmp_path / ".env").write_text("FISCAL_YEAR_END=0630\nUNRELATED=1\n")
    assert Settings().fiscal_year_end == "0630"


# --- CLI ---


def test_cli_usage(capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().err
    assert main(["--help"]) == 1


def test_cli_prints_output_path(tmp_path, capsys):
    path = _write(tmp_path, INVENTORY)
    assert main([str(path)]) == 0
    printed = Path(capsys.readouterr().out.strip())
    assert printed.resolve() == (tmp_path / "TEST-trimmed.json").resolve()
    assert printed.exists()


def test_cli_default_fiscal_year_end(tmp_path):
    path = _write(tmp_path, INVENTORY)
    assert main([str(path)]) == 0
    assert _labels(tmp_path / "TEST-trimmed.json") == {"FY2025"}


def test_cli_env_fiscal_year_end(tmp_path, monkeypatch):
    monkeypatch.setenv("FISCAL_YEAR_END", "1231")
    path = _write(tmp_path, INVENTORY)
    assert main([str(path)]) == 0
    assert _labels(tmp_path / "TEST-trimmed.json") == {"FY2024", "FY2024Q4"}


def test_cli_inventory_fiscal_year_end_wins(tmp_path, monkeypatch):
    monkeypatch.setenv("FISCAL_YEAR_END", "0930")
    path = _write(tmp_path, {**INVENTORY, "fiscalYearEnd": "1231"})
    assert main([str(path)]) == 0
    assert "FY2024Q4" in _labels(tmp_path / "TEST-trimmed.json")


def test_cli_malformed_input(tmp_path, capsys):
    path = _write(tmp_path, "{broken")
    assert main([str(path)]) == 1
    assert "error:" in capsys.readouterr().err
    assert not (tmp_path / "TEST-trimmed.json").exists()


def test_cli_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "missing.json")]) == 1
    assert "error:" in capsys.readouterr().err


def test_cli_invalid_configuration(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("FISCAL_YEAR_END", "13")
    assert main([str(_write(tmp_path, INVENTORY))]) == 1
    assert "invalid configuration" in capsys.readouterr().err
