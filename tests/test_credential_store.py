"""
Tests for credential persistence.
"""

import json

from stock_research.credential_store import CREDENTIAL_KEY, Credential, CredentialStore, JsonFileStorage


class TestCredential:
    """Presence flag and secret masking."""

    def test_empty_is_unset(self):
        assert not Credential().is_set
        assert not Credential("   ").is_set

    def test_value_is_set(self):
        assert Credential("abc").is_set

    def test_repr_hides_secret(self):
        assert "super-secret" not in repr(Credential("super-secret"))


class TestCredentialStore:
    """load/save lifecycle."""

    def test_unset_when_nothing_available(self, storage):
        assert CredentialStore(storage).load() == Credential()

    def test_fallback_used_when_nothing_saved(self, storage):
        store = CredentialStore(storage, fallback="env-key")
        assert store.credential.value == "env-key"

    def test_saved_value_wins_over_fallback(self, storage):
        CredentialStore(storage).save("saved-key")
        store = CredentialStore(storage, fallback="env-key")
        assert store.credential.value == "saved-key"

    def test_persistence_round_trip_across_sessions(self, tmp_path):
        path = tmp_path / "nested" / "credentials.json"
        assert CredentialStore(JsonFileStorage(path)).save("round-trip") is True
        fresh = CredentialStore(JsonFileStorage(path))
        assert fresh.load().value == "round-trip"

    def test_save_updates_memory_synchronously(self, storage):
        store = CredentialStore(storage)
        store.save("now")
        assert store.credential.value == "now"

    def test_cleared_value_persists_and_hides_fallback(self, storage):
        store = CredentialStore(storage, fallback="env-key")
        store.save("")
        assert not store.credential.is_set
        assert not CredentialStore(storage, fallback="env-key").credential.is_set

    def test_file_layout(self, storage):
        CredentialStore(storage).save("k")
        assert json.loads(storage.path.read_text(encoding="utf-8")) == {CREDENTIAL_KEY: "k"}

    def test_storage_failure_keeps_value_in_memory(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x", encoding="utf-8")
        store = CredentialStore(JsonFileStorage(blocker / "credentials.json"))
        assert store.save("session-only") is False
        assert store.credential.value == "session-only"

    def test_corrupt_file_treated_as_absent(self, storage):
        storage.path.write_text("{not json", encoding="utf-8")
        store = CredentialStore(storage, fallback="env-key")
        assert store.credential.value == "env-key"

    def test_load_is_idempotent(self, storage):
        store = CredentialStore(storage, fallback="env-key")
        assert store.load() == store.load()

    def test_file_readable_by_owner_only(self, storage):
        CredentialStore(storage).save("k")
        assert storage.path.stat().st_mode & 0o777 == 0o600
