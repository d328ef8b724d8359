"""Tests for the per-profile admin token store."""

from __future__ import annotations

import os
import stat
from datetime import datetime, timedelta, timezone

import pytest

from joantees.auth import TokenEntry, TokenStore


@pytest.fixture()
def store(tmp_path, monkeypatch: pytest.MonkeyPatch) -> TokenStore:
    """Create a TokenStore that writes to a temp directory."""
    monkeypatch.setattr("joantees.auth.token_store.get_data_dir", lambda: tmp_path)
    return TokenStore("staging")


class TestTokenEntry:
    def test_no_expiry_is_valid(self) -> None:
        assert TokenEntry(token="abc").is_valid()

    def test_future_expiry_is_valid(self) -> None:
        expires = datetime.now(timezone.utc) + timedelta(hours=1)
        assert TokenEntry(token="abc", expires_at=expires).is_valid()

    def test_past_expiry_is_invalid(self) -> None:
        expires = datetime.now(timezone.utc) - timedelta(seconds=1)
        assert not TokenEntry(token="abc", expires_at=expires).is_valid()

    def test_naive_expiry_treated_as_utc(self) -> None:
        expires = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)
        assert TokenEntry(token="abc", expires_at=expires).is_valid()


class TestTokenStore:
    def test_path_is_per_profile(self, store: TokenStore, tmp_path) -> None:
        assert store.path == tmp_path / "tokens" / "staging.json"

    def test_save_and_load(self, store: TokenStore) -> None:
        store.save(TokenEntry(token="eyJ.abc", email="ops@joantees.test"))
        entry = store.load()
        assert entry is not None
        assert entry.token == "eyJ.abc"
        assert entry.email == "ops@joantees.test"
        assert store.is_valid()

    def test_load_missing(self, store: TokenStore) -> None:
        assert store.load() is None
        assert not store.is_valid()

    def test_load_corrupt_file(self, store: TokenStore) -> None:
        store.path.write_text("{broken", encoding="utf-8")
        assert store.load() is None

    def test_expired_token_not_valid(self, store: TokenStore) -> None:
        past = datetime.now(timezone.utc) - timedelta(days=1)
        store.save(TokenEntry(token="old", expires_at=past))
        assert store.load() is not None
        assert not store.is_valid()

    def test_clear(self, store: TokenStore) -> None:
        store.save(TokenEntry(token="abc"))
        store.clear()
        assert not store.path.exists()
        store.clear()

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
    def test_file_permissions(self, store: TokenStore) -> None:
        store.save(TokenEntry(token="abc"))
        assert stat.S_IMODE(store.path.stat().st_mode) == 0o600
