"""Tests for the create-user command in main.py."""

from __future__ import annotations

import pytest

import main
from auth.store import AccountStore
from core.config import get_settings


@pytest.fixture
def db_url(tmp_path, monkeypatch: pytest.MonkeyPatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


def test_create_admin(db_url: str, capsys: pytest.CaptureFixture) -> None:
    assert main.main(["create-user", "opsadmin", "opspass1", "--role", "admin"]) == 0
    assert "role 'admin'" in capsys.readouterr().out
    store = AccountStore(db_url)
    try:
        assert store.find_by_username("opsadmin").role == "admin"
    finally:
        store.close()


def test_create_duplicate_fails(db_url: str, capsys: pytest.CaptureFixture) -> None:
    assert main.main(["create-user", "opsuser", "opspass1"]) == 0
    assert main.main(["create-user", "opsuser", "opspass2"]) == 1
    assert "already exists" in capsys.readouterr().err


def test_create_rejects_short_password(db_url: str, capsys: pytest.CaptureFixture) -> None:
    assert main.main(["create-user", "opsuser", "123"]) == 1
    assert "at least 6" in capsys.readouterr().err


def test_unknown_role_rejected_by_parser(db_url: str) -> None:
    with pytest.raises(SystemExit):
        main.main(["create-user", "opsuser", "opspass1", "--role", "root"])


def test_create_rejects_password_over_72_bytes(db_url: str, capsys: pytest.CaptureFixture) -> None:
    assert main.main(["create-user", "opsuser", "é" * 40]) == 1
    assert "72 bytes" in capsys.readouterr().err
