"""Unit tests for the local storage helpers."""

import json
import zipfile

import pytest

from infrastructure.storage.file_storage import FileStorage
from infrastructure.storage.json_handler import JSONHandler


class TestFileStorage:
    """Test cases for FileStorage."""

    @pytest.fixture(autouse=True)
    def setup_storage(self, tmp_path):
        self.tmp_path = tmp_path
        self.storage = FileStorage(str(tmp_path))

    def test_relative_paths_live_under_base_path(self):
        self.storage.write_file("state/notes.txt", "hello")

        assert (self.tmp_path / "state" / "notes.txt").read_text() == "hello"
        assert self.storage.read_file("state/notes.txt") == "hello"

    def test_write_replaces_previous_content(self):
        self.storage.write_file("notes.txt", "first")
        self.storage.write_file("notes.txt", "second")

        assert self.storage.read_file("notes.txt") == "second"
        assert not (self.tmp_path / ".notes.txt.tmp").exists()

    def test_env_file_round_trip(self):
        self.storage.write_env_file("near-environment", {"AWS_REGION": "us-east-1", "NEAR_NETWORK": "mainnet"})

        assert (self.tmp_path / "near-environment").read_text() == "AWS_REGION=us-east-1\nNEAR_NETWORK=mainnet\n"
        assert self.storage.read_env_file("near-environment") == {
            "AWS_REGION": "us-east-1",
            "NEAR_NETWORK": "mainnet",
        }

    def test_read_env_file_skips_comments_and_quotes(self):
        (self.tmp_path / "bootstrap.env").write_text(
            "# comment\n\nexport STACK_NAME='near'\nRESOURCE_ID=\"Node\"\nnot a setting\n"
        )

        assert self.storage.read_env_file("bootstrap.env") == {"STACK_NAME": "near", "RESOURCE_ID": "Node"}

    def test_extract_archive(self):
        archive = self.tmp_path / "assets.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("near-setup.sh", "#!/bin/bash\necho setup\n")

        extracted = self.storage.extract_archive(str(archive), "assets")

        assert (self.tmp_path / "assets" / "near-setup.sh").exists()
        assert extracted == str(self.tmp_path / "assets")

    def test_extract_missing_archive(self):
        with pytest.raises(FileNotFoundError):
            self.storage.extract_archive("missing.zip", "assets")

    def test_delete_file(self):
        self.storage.write_file("notes.txt", "x")

        assert self.storage.delete_file("notes.txt") is True
        assert self.storage.delete_file("notes.txt") is False


class TestJSONHandler:
    """Test cases for JSONHandler."""

    @pytest.fixture(autouse=True)
    def setup_handler(self, tmp_path):
        self.tmp_path = tmp_path
        self.handler = JSONHandler(FileStorage(str(tmp_path)))

    def test_read_missing_file(self):
        with pytest.raises(FileNotFoundError):
            self.handler.read_json("missing.json")

    def test_default_for_missing_or_corrupt_file(self):
        (self.tmp_path / "corrupt.json").write_text("{")

        assert self.handler.read_json_or_default("missing.json", {"a": 1}) == {"a": 1}
        assert self.handler.read_json_or_default("corrupt.json", {}) == {}

    def test_update_merges_top_level_keys(self):
        self.handler.write_json("state.json", {"i-1": {"block_height": 10}})

        self.handler.update_json("state.json", {"i-2": {"block_height": 20}})

        data = json.loads((self.tmp_path / "state.json").read_text())
        assert data == {"i-1": {"block_height": 10}, "i-2": {"block_height": 20}}


if __name__ == "__main__":
    pytest.main([__file__])
