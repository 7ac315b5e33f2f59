"""Tests for the SQLite-backed key/value store."""

import pytest

from tradebench.db.local_storage import LocalStorage, progress_key, user_key_prefixes


@pytest.fixture
def storage(db_path):
    return LocalStorage(db_path)


class TestLocalStorage:
    """get/set/update/remove."""

    def test_init_creates_file(self, storage, db_path):
        assert db_path.exists()

    def test_missing_key_returns_default(self, storage):
        assert storage.get_item("absent") is None
        assert storage.get_item("absent", []) == []

    def test_set_then_get_roundtrips_json(self, storage):
        storage.set_item("k", {"a": [1, 2], "b": None})
        assert storage.get_item("k") == {"a": [1, 2], "b": None}

    def test_set_overwrites(self, storage):
        storage.set_item("k", 1)
        storage.set_item("k", 2)
        assert storage.get_item("k") == 2

    def test_update_item_applies_function(self, storage):
        storage.update_item("n", lambda v: v + 1, default=0)
        result = storage.update_item("n", lambda v: v + 1, default=0)
        assert result == 2
        assert storage.get_item("n") == 2

    def test_update_item_aborts_on_error(self, storage):
        """An exception inside fn leaves the stored value untouched."""
        storage.set_item("k", "before")

        def explode(_):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            storage.update_item("k", explode)
        assert storage.get_item("k") == "before"

    def test_remove_item(self, storage):
        storage.set_item("k", 1)
        assert storage.remove_item("k") is True
        assert storage.remove_item("k") is False

    def test_keys_by_prefix(self, storage):
        storage.set_item("a_1", 1)
        storage.set_item("a_2", 2)
        storage.set_item("b_1", 3)
        assert storage.keys("a_") == ["a_1", "a_2"]

    def test_prefix_is_literal(self, storage):
        """Underscores and percent signs in prefixes are not wildcards."""
        storage.set_item("x_1", 1)
        storage.set_item("xy1", 2)
        assert storage.keys("x_") == ["x_1"]

    def test_remove_user_prefixes(self, storage):
        storage.set_item(progress_key("u1", 1), {})
        storage.set_item(progress_key("u1", 2), {})
        storage.set_item(progress_key("u10", 1), {})
        removed = sum(storage.remove_prefix(p) for p in user_key_prefixes("u1"))
        assert removed == 2
        assert storage.keys() == [progress_key("u10", 1)]

    def test_clear(self, storage):
        storage.set_item("k", 1)
        storage.clear()
        assert storage.keys() == []
