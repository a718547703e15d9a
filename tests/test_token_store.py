"""Tests for local storage and the encrypted token store."""

import base64

from portal.services.token_store import TokenStore


class TestLocalStorage:
    """Test the key-value table."""

    def test_get_missing_key(self, storage):
        """Unknown keys read as None."""
        assert storage.get("missing") is None

    def test_set_and_overwrite(self, storage):
        """set() upserts."""
        assert storage.set("k", "one") is True
        assert storage.set("k", "two") is True
        assert storage.get("k") == "two"

    def test_remove_is_idempotent(self, storage):
        """Removing twice succeeds both times."""
        storage.set("k", "v")
        assert storage.remove("k") is True
        assert storage.remove("k") is True
        assert storage.get("k") is None

    def test_closed_database_is_tolerated(self, db, storage):
        """Failures are reported through return values, not raised."""
        db.close()
        assert storage.get("k") is None
        assert storage.set("k", "v") is False


class TestTokenStore:
    """Test save / load / clear of the session token."""

    def test_load_without_token(self, token_store):
        """Nothing stored yet."""
        assert token_store.load() is None

    def test_save_then_load(self, token_store):
        """The token survives the encryption round trip."""
        assert token_store.save("opaque-token-123") is True
        assert token_store.load() == "opaque-token-123"

    def test_value_is_encrypted_at_rest(self, token_store, storage):
        """The plaintext never reaches the table."""
        token_store.save("opaque-token-123")
        blob = storage.get("token")
        assert blob is not None
        assert "opaque-token-123" not in blob
        assert b"opaque-token-123" not in base64.b64decode(blob)

    def test_single_entry_under_configured_key(self, storage, logger):
        """The token is stored under the configured key only."""
        store = TokenStore(storage, logger, key="session", kdf_iterations=1_000, identity="x")
        store.save("abc")
        assert storage.get("session") is not None
        assert storage.get("token") is None

    def test_save_replaces_previous_token(self, token_store):
        token_store.save("first")
        token_store.save("second")
        assert token_store.load() == "second"

    def test_clear_is_idempotent(self, token_store):
        """clear() twice leaves nothing behind."""
        token_store.save("abc")
        token_store.clear()
        token_store.clear()
        assert token_store.load() is None

    def test_corrupted_blob_reads_as_absent(self, token_store, storage):
        """A blob that is not base64 is ignored."""
        storage.set("token", "not base64 at all!!")
        assert token_store.load() is None

    def test_truncated_blob_reads_as_absent(self, token_store, storage):
        storage.set("token", base64.b64encode(b"short").decode("ascii"))
        assert token_store.load() is None

    def test_tampered_ciphertext_reads_as_absent(self, token_store, storage):
        """GCM authentication rejects modified data."""
        token_store.save("opaque-token-123")
        raw = bytearray(base64.b64decode(storage.get("token")))
        raw[-1] ^= 0x01
        storage.set("token", base64.b64encode(bytes(raw)).decode("ascii"))
        assert token_store.load() is None

    def test_other_identity_cannot_decrypt(self, token_store, storage, logger):
        """A different machine identity derives a different key."""
        token_store.save("opaque-token-123")
        other = TokenStore(storage, logger, kdf_iterations=1_000, identity="other-host:someone")
        assert other.load() is None
