"""
Tests for the command-line interface on a file-backed store.
"""
import json
from unittest.mock import AsyncMock

import pytest
from typer.testing import CliRunner

from idoheart.cli import app
from idoheart.client import IDoHeartClient
from tests.conftest import referral_payload

runner = CliRunner()


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    path = tmp_path / "store.json"
    monkeypatch.setenv("IDOHEART_STORAGE_PATH", str(path))
    monkeypatch.setenv("IDOHEART_IS_LOGGING", "false")
    monkeypatch.delenv("IDOHEART_API_KEY", raising=False)
    monkeypatch.delenv("IDOHEART_DEBUG", raising=False)
    monkeypatch.delenv("IDOHEART_ALLOW_SELF_REDEMPTION", raising=False)
    return path


def test_status_on_empty_store(store_path):
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "No referrals sent" in result.output
    assert "Received code: none" in result.output


def test_receive_then_status(store_path):
    result = runner.invoke(app, ["receive", "ABC123"])
    assert result.exit_code == 0

    stored = json.loads(store_path.read_text())
    assert stored["receivedCode"]["code"] == "ABC123"
    assert stored["receivedCode"]["state"] == "installed"

    result = runner.invoke(app, ["status"])
    assert "ABC123" in result.output
    assert "installed" in result.output


def test_receive_own_code_rejected(store_path):
    store_path.write_text(json.dumps({"sentReferrals": [referral_payload("mine")]}))

    result = runner.invoke(app, ["receive", "mine"])

    assert result.exit_code == 1
    assert "receivedCode" not in json.loads(store_path.read_text())


def test_reset_received_requires_debug(store_path, monkeypatch):
    runner.invoke(app, ["receive", "ABC123", "--state", "redeemed"])

    result = runner.invoke(app, ["reset-received"])
    assert result.exit_code == 1

    monkeypatch.setenv("IDOHEART_DEBUG", "true")
    result = runner.invoke(app, ["reset-received"])
    assert result.exit_code == 0
    assert "receivedCode" not in json.loads(store_path.read_text())


def test_generate_without_api_key_fails(store_path):
    result = runner.invoke(app, ["generate"])

    assert result.exit_code == 1
    assert "API key not set" in result.output


@pytest.mark.parametrize("args", [["status"], ["receive", "ABC123"], ["reset-received"]])
def test_offline_commands_close_http_client(store_path, monkeypatch, args):
    close = AsyncMock()
    monkeypatch.setattr(IDoHeartClient, "close", close)

    runner.invoke(app, args)

    close.assert_awaited_once()
