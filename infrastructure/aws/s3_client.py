"""AWS S3 client for fetching provisioning assets."""

from pathlib import Path

from .base_client import BaseAWSClient


class S3Client(BaseAWSClient):
    """AWS S3 client wrapper."""

    service_name = "s3"

    async def download_file(self, bucket: str, key: str, destination: str) -> str:
        """Download ``s3://bucket/key`` to a local path and return the path."""
        try:
            self._ensure_client()
            Path(destination).parent.mkdir(parents=True, exist_ok=True)
            self._client.download_file(bucket, key, destination)
            self.logger.info(f"Downloaded s3://{bucket}/{key} to {destination}")
            return destination

        except Exception as e:
            self._handle_error("download_file", e)
