import json
import os
import stat

from arlo.auth.storage.backends import JsonFileStorage, MemoryStorage


class TestMemoryStorage:
    def test_set_get_remove(self) -> None:
        # Arrange
        storage = MemoryStorage()

        # Act
        storage.set_item("k", "v")

        # Assert
        assert storage.get_item("k") == "v"
        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_remove_missing_key_is_noop(self) -> None:
        storage = MemoryStorage()
        storage.remove_item("missing")
        assert len(storage) == 0


class TestJsonFileStorage:
    def test_values_survive_a_new_instance(self, tmp_path) -> None:
        # Arrange
        path = tmp_path / "nested" / "session.json"
        JsonFileStorage(path).set_item("arlo_auth_user", '{"id": "u1"}')

        # Act
        reopened = JsonFileStorage(path)

        # Assert
        assert reopened.get_item("arlo_auth_user") == '{"id": "u1"}'
        assert json.loads(path.read_text()) == {"arlo_auth_user": '{"id": "u1"}'}

    def test_remove_and_clear(self, tmp_path) -> None:
        # Arrange
        storage = JsonFileStorage(tmp_path / "s.json")
        storage.set_item("a", "1")
        storage.set_item("b", "2")

        # Act
        storage.remove_item("a")

        # Assert
        assert storage.get_item("a") is None
        assert storage.get_item("b") == "2"
        storage.clear()
        assert storage.get_item("b") is None

    def test_missing_file_reads_as_empty(self, tmp_path) -> None:
        storage = JsonFileStorage(tmp_path / "absent.json")
        assert storage.get_item("anything") is None

    def test_corrupt_file_reads_as_empty(self, tmp_path) -> None:
        # Arrange
        path = tmp_path / "s.json"
        path.write_text("{not json")

        # Act & Assert
        assert JsonFileStorage(path).get_item("arlo_auth_user") is None

    def test_file_is_private_to_owner(self, tmp_path) -> None:
        # Arrange
        path = tmp_path / "s.json"

        # Act
        JsonFileStorage(path).set_item("k", "v")

        # Assert
        mode = stat.S_IMODE(os.stat(path).st_mode)
        assert mode == 0o600
        assert list(tmp_path.iterdir()) == [path]

    def test_non_utf8_file_reads_as_empty(self, tmp_path) -> None:
        # Arrange
        path = tmp_path / "s.json"
        path.write_bytes(b'{"arlo_auth_user": "\xff\xfe"}')
        storage = JsonFileStorage(path)

        # Act & Assert
        assert storage.get_item("arlo_auth_user") is None
        storage.remove_item("arlo_auth_user")
        storage.clear()
        assert path.read_text() == "{}"
