"""Storage infrastructure package."""

from .file_storage import FileStorage
from .json_handler import JSONHandler

__all__ = ["FileStorage", "JSONHandler"]
