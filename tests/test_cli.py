"""Tests for the command-line entry point."""

import json

import pytest

from dealengine import main as cli
from dealengine.core.config import get_settings
from dealengine.utils.mock_data import MockMarketDataProvider

BASE_ARGS = ["--ean", "5012345678900", "--quantity", "100", "--buy-price", "10", "--mock"]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config, logs and settings out of the real home directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr("dealengine.core.config._settings", None)
    return tmp_path


class TestMain:
    """Tests for main()."""

    def test_prints_evaluation(self, capsys):
        """Test a successful run prints the JSON result."""
        code = cli.main(BASE_ARGS + ["--category", "Electronics"])
        result = json.loads(capsys.readouterr().out)

        assert code == cli.EXIT_OK
        assert result["ean"] == "5012345678900"
        assert result["decision"] in ("Buy", "Renegotiate", "Source Elsewhere", "Pass")
        assert 0 <= result["dealQualityScore"] <= 100
        assert result["allocation"]["allocatedQuantity"] + result["allocation"]["hold"] == 100
        assert result["fxFallbackUsed"] is True

    def test_output_is_deterministic(self, capsys):
        """Test repeated runs print the same result."""
        cli.main(BASE_ARGS)
        first = capsys.readouterr().out
        cli.main(BASE_ARGS)
        second = capsys.readouterr().out

        assert first == second

    def test_invalid_quantity(self, capsys):
        """Test a non-positive quantity exits with the invalid-input code."""
        args = ["--ean", "123", "--quantity", "0", "--buy-price", "10", "--mock"]

        assert cli.main(args) == cli.EXIT_INVALID
        assert "quantity" in capsys.readouterr().err

    def test_invalid_price(self):
        """Test a non-numeric buy price exits with the invalid-input code."""
        args = ["--ean", "123", "--quantity", "5", "--buy-price", "cheap", "--mock"]

        assert cli.main(args) == cli.EXIT_INVALID

    def test_missing_overrides_file(self, tmp_path):
        """Test an unreadable overrides file exits with the invalid-input code."""
        assert cli.main(BASE_ARGS + ["--overrides", str(tmp_path / "nope.json")]) == cli.EXIT_INVALID

    def test_invalid_override(self, tmp_path):
        """Test a malformed override exits with the invalid-input code."""
        path = tmp_path / "overrides.json"
        path.write_text(json.dumps({"feeOverrides": {"marketplace": "US", "fbaFee": -3}}))

        assert cli.main(BASE_ARGS + ["--overrides", str(path)]) == cli.EXIT_INVALID

    def test_override_applied(self, tmp_path, capsys):
        """Test overrides from a file are reported in the output."""
        path = tmp_path / "overrides.json"
        path.write_text(json.dumps({"feeOverrides": {"marketplace": "US", "referralRate": 0.1}}))

        assert cli.main(BASE_ARGS + ["--overrides", str(path)]) == cli.EXIT_OK
        result = json.loads(capsys.readouterr().out)
        assert result["assumptions"]["overriddenFields"] == ["fees.US-amazon.referral_rate"]

    def test_no_market_data(self, monkeypatch, capsys):
        """Test missing marketplace data exits with its own code."""
        missing = {
            f"{channel}-{marketplace}"
            for channel in ("amazon", "ebay")
            for marketplace in ("US", "UK", "DE", "FR", "IT", "AU")
        }
        monkeypatch.setattr(cli, "MockMarketDataProvider", lambda: MockMarketDataProvider(missing=missing))

        assert cli.main(BASE_ARGS) == cli.EXIT_NO_MARKET_DATA
        assert "No Amazon or eBay" in capsys.readouterr().err

    def test_mock_flag_leaves_global_settings(self) -> None:
        settings = get_settings()
        settings.fx.mock_mode = False

        assert cli.main(BASE_ARGS) == cli.EXIT_OK
        assert get_settings() is settings
        assert settings.fx.mock_mode is False

    def test_show_assumptions(self, capsys) -> None:
        assert cli.main(BASE_ARGS + ["--show-assumptions"]) == cli.EXIT_OK
        details = json.loads(capsys.readouterr().out)["assumptions"]["details"]

        assert details["version"] == "1.0.0"
        assert {d["route"] for d in details["duty"]} == {
            "CN-US",
            "CN-UK",
            "CN-DE",
            "CN-FR",
            "CN-IT",
            "CN-AU",
        }

    def test_brand_and_title(self, capsys) -> None:
        args = BASE_ARGS + ["--brand", "Nintendo", "--title", "Switch controller"]

        assert cli.main(args) == cli.EXIT_OK
        compliance = json.loads(capsys.readouterr().out)["compliance"]
        assert [f["type"] for f in compliance["flags"]] == ["BRAND_GATED"]
        assert compliance["overallRisk"] == "high"
