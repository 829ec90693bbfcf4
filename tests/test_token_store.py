"""Tests for the in-memory and file-backed token stores."""

import json
import logging

from xbrlus_client.token_store import Credentials, FileTokenStore, MemoryTokenStore


class TestCredentials:
    def test_complete(self):
        assert Credentials("a", "r").complete
        assert not Credentials("a", None).complete
        assert not Credentials("", "r").complete

    def test_from_dict_treats_empty_as_absent(self):
        assert Credentials.from_dict({"access_token": "", "refresh_token": "r"}) == Credentials(None, "r")


class TestMemoryTokenStore:
    def test_get_set(self):
        store = MemoryTokenStore()
        assert store.load() == Credentials()

        store.set_access_token("a")
        store.set_refresh_token("r")

        assert store.get_access_token() == "a"
        assert store.load() == Credentials("a", "r")

    def test_save_overwrites(self):
        store = MemoryTokenStore(Credentials("a", "r"))
        store.save(Credentials())
        assert store.load() == Credentials()

    def test_caller_credentials_not_mutated(self):
        initial = Credentials("a", "r")
        store = MemoryTokenStore(initial)

        store.set_access_token("a2")

        assert initial == Credentials("a", "r")
        assert store.load() == Credentials("a2", "r")


class TestFileTokenStore:
    def test_missing_file_is_empty(self, tmp_path):
        store = FileTokenStore(str(tmp_path / "tokens.json"))
        assert store.load() == Credentials()

    def test_save_creates_parents(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "tokens.json"
        store = FileTokenStore(str(path))

        store.save(Credentials("a", "r"))

        assert json.loads(path.read_text()) == {"access_token": "a", "refresh_token": "r"}
        assert FileTokenStore(str(path)).load() == Credentials("a", "r")

    def test_individual_setters_keep_other_token(self, tmp_path):
        store = FileTokenStore(str(tmp_path / "tokens.json"))
        store.set_access_token("a")
        store.set_refresh_token("r")
        store.set_access_token("a2")
        assert store.load() == Credentials("a2", "r")

    def test_unrelated_keys_preserved(self, tmp_path):
        path = tmp_path / "tokens.json"
        path.write_text(json.dumps({"access_token": "a", "note": "keep"}))

        FileTokenStore(str(path)).set_refresh_token("r")

        assert json.loads(path.read_text()) == {"access_token": "a", "note": "keep", "refresh_token": "r"}

    def test_corrupt_file_logged_and_ignored(self, tmp_path, caplog):
        path = tmp_path / "tokens.json"
        path.write_text("{not json")

        with caplog.at_level(logging.WARNING, logger="xbrlus-token-store"):
            assert FileTokenStore(str(path)).load() == Credentials()
        assert "Failed to read tokens" in caplog.text

    def test_cleared_pair_written_as_null(self, tmp_path):
        path = tmp_path / "tokens.json"
        store = FileTokenStore(str(path))
        store.save(Credentials("a", "r"))

        store.save(Credentials())

        assert json.loads(path.read_text()) == {"access_token": None, "refresh_token": None}
        assert store.load() == Credentials()
