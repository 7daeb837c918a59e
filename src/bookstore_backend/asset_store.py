"""
Asset store module for resolving retrieval URLs of uploaded files.

Cover and print documents live in object storage, addressed by their uuid.
When an S3 bucket is configured, retrieval URLs are presigned, time-limited
``get_object`` URLs; otherwise the public CDN URL is built from the
configured base URL.
"""

from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class AssetStore:
    """
    Resolves asset uuids to URLs the document inspector can fetch.

    Args:
        base_url: Public CDN base URL, used when no bucket is configured
        bucket_name: S3 bucket holding the assets (empty to disable S3)
        expiration: Presigned URL lifetime in seconds
    """

    def __init__(self, base_url: str, bucket_name: str = "", expiration: int = 3600) -> None:
        self.base_url = base_url.rstrip("/")
        self.bucket_name = bucket_name
        self.expiration = expiration
        self._s3_client = None

    def _get_s3_client(self):
        """
        Get or create the S3 client.

        Returns:
            boto3 S3 client or None if bucket is not configured
        """
        if self._s3_client is None:
            if not self.bucket_name:
                return None
            self._s3_client = boto3.client("s3")
        return self._s3_client

    def public_url(self, asset_uuid: str) -> str:
        return f"{self.base_url}/{asset_uuid}"

    def resolve_retrieval_url(self, asset_uuid: str) -> str:
        """
        Get a URL from which the asset's bytes can be downloaded.

        Args:
            asset_uuid: The asset's uuid (object key)

        Returns:
            Presigned S3 URL, or the public CDN URL when S3 is not configured

        Raises:
            ClientError: If the presigned URL cannot be generated
        """
        client = self._get_s3_client()
        if client is None:
            return self.public_url(asset_uuid)

        try:
            url = client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": asset_uuid},
                ExpiresIn=self.expiration,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to generate presigned URL for {asset_uuid}: {e}")
            raise

        logger.debug(f"Generated presigned URL for {asset_uuid} (expires in {self.expiration}s)")
        return url
