import click
import pytest
from click.testing import CliRunner

import main


def test_failed_migration_aborts_prod_before_gunicorn(monkeypatch):
    started = []

    def broken_upgrade(config, revision):
        raise RuntimeError("relation already exists")

    monkeypatch.setattr(main.command, "upgrade", broken_upgrade)
    monkeypatch.setattr(main.subprocess, "run", lambda cmd, check: started.append(cmd))

    result = CliRunner().invoke(main.cli, ["prod"])

    assert result.exit_code != 0
    assert "Migration failed: relation already exists" in result.output
    assert started == []


def test_run_migrations_raises_click_exception(monkeypatch):
    def broken_upgrade(config, revision):
        raise RuntimeError("no such revision")

    monkeypatch.setattr(main.command, "upgrade", broken_upgrade)

    with pytest.raises(click.ClickException):
        main.run_migrations("abc123")


def test_prod_starts_gunicorn_after_migrating(monkeypatch):
    calls = []
    monkeypatch.setattr(main.command, "upgrade", lambda config, revision: calls.append(revision))
    monkeypatch.setattr(main.subprocess, "run", lambda cmd, check: calls.append(cmd[0]))

    result = CliRunner().invoke(main.cli, ["prod", "--workers", "2"])

    assert result.exit_code == 0
    assert calls == ["head", "gunicorn"]
