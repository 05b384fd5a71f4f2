"""Unit tests for the command-line entry point."""

from __future__ import annotations

import pytest

from haikuagent import cli


class TestMain:
    def test_missing_config_file_fails(self, tmp_path, caplog):
        missing = tmp_path / "missing.toml"

        assert cli.main(["run", str(missing)]) == 1
        assert "Failed to initialize services" in caplog.text

    def test_missing_secrets_fail(self, tmp_path, monkeypatch, caplog):
        config_path = tmp_path / "haiku.toml"
        config_path.write_text(
            '[[events]]\ntag = "combat"\nprompt = "{attacker} attacks"\n',
            encoding="utf-8",
        )
        monkeypatch.delenv("SIGNER_ADDRESS", raising=False)
        monkeypatch.delenv("SIGNER_PRIVATE_KEY", raising=False)

        assert cli.main(["run", str(config_path), "--env-file", str(tmp_path / "none.env")]) == 1
        assert "SIGNER_ADDRESS is not set" in caplog.text

    def test_runs_agent_with_loaded_config(self, tmp_path, monkeypatch):
        config_path = tmp_path / "haiku.toml"
        config_path.write_text(
            '[[events]]\ntag = "combat"\nprompt = "{attacker} attacks"\n',
            encoding="utf-8",
        )
        monkeypatch.setenv("SIGNER_ADDRESS", "0x1")
        monkeypatch.setenv("SIGNER_PRIVATE_KEY", "0x2")
        seen = {}

        async def _fake_run_agent(config, secrets):
            seen["tags"] = config.event_tags
            seen["address"] = secrets.signer_address

        monkeypatch.setattr(cli, "run_agent", _fake_run_agent)

        assert cli.main(["run", str(config_path), "--env-file", str(tmp_path / "none.env")]) == 0
        assert seen == {"tags": frozenset({"combat"}), "address": "0x1"}

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.main([])
