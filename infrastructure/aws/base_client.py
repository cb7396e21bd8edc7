"""Shared plumbing for the AWS client wrappers."""

from typing import Any, Optional

from botocore.exceptions import ClientError
from .session_manager import AWSSessionManager
from core.utils.logger import get_infrastructure_logger


class BaseAWSClient:
    """Lazily creates a boto3 client and logs failures consistently."""

    service_name: str = ""

    def __init__(
        self,
        region: str,
        account_id: Optional[str] = None,
        role_name: Optional[str] = None,
        run_mode: Optional[str] = None,
        client: Any = None,
    ):
        self.region = region
        self.account_id = account_id
        self.role_name = role_name
        self.run_mode = run_mode
        self.logger = get_infrastructure_logger(type(self).__module__)
        self._client = client
        self._session_manager = AWSSessionManager(region=region)

    def _ensure_client(self) -> None:
        """Ensure the boto3 client is initialized (lazy initialization)."""
        if self._client is None:
            session = self._session_manager.get_session(self.account_id, self.role_name, self.run_mode)
            self._client = session.client(self.service_name, region_name=self.region)

    @staticmethod
    def error_code(error: Exception) -> Optional[str]:
        if isinstance(error, ClientError):
            return error.response.get("Error", {}).get("Code")
        return None

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Handle AWS client errors with consistent logging."""
        if isinstance(error, ClientError):
            self.logger.error(f"{operation} failed: {self.error_code(error)}")
        else:
            self.logger.error(f"{operation} failed: {str(error)}")
        raise error
