"""JSON handler for reading and writing JSON state files."""

import json
import logging
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from enum import Enum

from .file_storage import FileStorage


class JSONHandler:
    """Handler for JSON file operations."""

    def __init__(self, file_storage: Optional[FileStorage] = None):
        self.file_storage = file_storage or FileStorage()
        self.logger = logging.getLogger(__name__)

    def write_json(
        self,
        file_path: str,
        data: Union[Dict[str, Any], List[Any]],
        indent: Optional[int] = 2,
        sort_keys: bool = False,
    ) -> bool:
        """Write data to JSON file."""
        try:
            json_content = json.dumps(
                data,
                indent=indent,
                ensure_ascii=False,
                sort_keys=sort_keys,
                default=self._json_serializer
            )

            self.file_storage.write_file(file_path, json_content)

            self.logger.debug(f"JSON file written: {file_path}")
            return True

        except Exception as e:
            self.logger.error(f"Failed to write JSON file {file_path}: {str(e)}")
            raise

    def read_json(self, file_path: str) -> Union[Dict[str, Any], List[Any]]:
        """Read data from JSON file."""
        try:
            if not self.file_storage.file_exists(file_path):
                raise FileNotFoundError(f"JSON file not found: {file_path}")

            content = self.file_storage.read_file(file_path)
            return json.loads(content)

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in file {file_path}: {str(e)}")
            raise
        except FileNotFoundError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to read JSON file {file_path}: {str(e)}")
            raise

    def read_json_or_default(self, file_path: str, default: Any) -> Any:
        """Read a JSON file, falling back to ``default`` if it is missing or corrupt."""
        try:
            return self.read_json(file_path)
        except FileNotFoundError:
            return default
        except json.JSONDecodeError:
            self.logger.warning(f"Ignoring unreadable JSON state in {file_path}")
            return default

    def update_json(self, file_path: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Merge top-level keys into a JSON object file, creating it if missing."""
        data = self.read_json_or_default(file_path, {})
        if not isinstance(data, dict):
            raise ValueError(f"Cannot update non-object JSON in {file_path}")

        data.update(updates)
        self.write_json(file_path, data)
        return data

    def _json_serializer(self, obj: Any) -> Any:
        """Custom JSON serializer for special types."""
        if isinstance(obj, datetime):
            return obj.isoformat()
        elif isinstance(obj, Enum):
            return obj.value
        elif hasattr(obj, 'to_dict'):
            return obj.to_dict()
        elif hasattr(obj, '__dict__'):
            return obj.__dict__
        else:
            return str(obj)
