"""File storage handler for node-local files."""

import os
import shutil
import logging
from typing import Dict, Optional
from pathlib import Path


class FileStorage:
    """File storage handler for state, environment and payload files."""

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path) if base_path else Path.cwd()
        self.logger = logging.getLogger(__name__)

    def resolve(self, file_path: str) -> Path:
        """Absolute paths are used as-is; relative ones live under base_path."""
        path = Path(file_path)
        return path if path.is_absolute() else self.base_path / path

    def ensure_directory_exists(self, directory_path: str) -> bool:
        """Ensure directory exists, create if it doesn't."""
        try:
            path = self.resolve(directory_path)
            path.mkdir(parents=True, exist_ok=True)

            self.logger.debug(f"Directory ensured: {path}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to create directory {directory_path}: {str(e)}")
            raise

    def write_file(
        self, file_path: str, content: str, encoding: str = 'utf-8', mode: Optional[int] = None
    ) -> bool:
        """Write content to a file, replacing any previous copy."""
        try:
            path = self.resolve(file_path)
            self.ensure_directory_exists(str(path.parent))

            # Write to a sibling temp file so a crash never leaves a half-written copy
            tmp_path = path.with_name(f".{path.name}.tmp")
            with open(tmp_path, 'w', encoding=encoding) as f:
                f.write(content)
            if mode is not None:
                os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)

            self.logger.debug(f"File written: {path}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to write file {file_path}: {str(e)}")
            raise

    def read_file(self, file_path: str, encoding: str = 'utf-8') -> str:
        """Read content from a file."""
        try:
            path = self.resolve(file_path)

            if not path.exists():
                raise FileNotFoundError(f"File not found: {path}")

            with open(path, 'r', encoding=encoding) as f:
                return f.read()

        except FileNotFoundError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to read file {file_path}: {str(e)}")
            raise

    def file_exists(self, file_path: str) -> bool:
        """Check if file exists."""
        return self.resolve(file_path).is_file()

    def delete_file(self, file_path: str) -> bool:
        """Delete a file. Returns False if it did not exist."""
        path = self.resolve(file_path)
        if not path.exists():
            return False
        path.unlink()
        self.logger.debug(f"File deleted: {path}")
        return True

    def write_env_file(self, file_path: str, values: Dict[str, str]) -> bool:
        """Write ``KEY=VALUE`` lines, one per entry, overwriting the file."""
        lines = [f"{key}={value}" for key, value in values.items()]
        return self.write_file(file_path, "\n".join(lines) + "\n", mode=0o644)

    def read_env_file(self, file_path: str) -> Dict[str, str]:
        """Parse a ``KEY=VALUE`` file; blank lines and comments are skipped."""
        values = {}
        for line in self.read_file(file_path).splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            key, _, value = line.partition("=")
            values[key.strip()] = value.strip().strip('"').strip("'")
        return values

    def extract_archive(self, archive_path: str, extract_to: str) -> str:
        """Extract an archive to a directory, overwriting files already there."""
        try:
            archive = self.resolve(archive_path)
            extract_dir = self.resolve(extract_to)

            if not archive.exists():
                raise FileNotFoundError(f"Archive not found: {archive_path}")

            self.ensure_directory_exists(str(extract_dir))
            shutil.unpack_archive(str(archive), str(extract_dir))

            self.logger.info(f"Archive extracted: {archive_path} -> {extract_to}")
            return str(extract_dir)

        except Exception as e:
            self.logger.error(f"Failed to extract archive {archive_path}: {str(e)}")
            raise
