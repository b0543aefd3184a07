"""
Asset Catalog - Lists candidate background clips in an S3-compatible bucket.
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from storyreel.config import Settings, get_settings

logger = logging.getLogger(__name__)


VIDEO_EXTENSIONS = (".mp4", ".mov", ".webm")


class AssetCatalog:
    """
    Service for listing background clips stored under category prefixes.

    Keys are turned into URLs either against the public base URL (CDN / R2 public
    bucket) or as presigned GET URLs when no public base is configured.
    """

    def __init__(self, settings: Optional[Settings] = None, client=None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.asset_bucket)

    @property
    def client(self):
        """Lazy-initialize S3 client."""
        if self._client is None:
            timeout = self.settings.catalog_timeout_seconds
            config = {
                "region_name": self.settings.asset_region,
                "config": Config(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"total_max_attempts": 1, "mode": "standard"},
                ),
            }
            if self.settings.asset_endpoint_url:
                config["endpoint_url"] = self.settings.asset_endpoint_url
            if self.settings.asset_access_key_id and self.settings.asset_secret_access_key:
                config["aws_access_key_id"] = self.settings.asset_access_key_id
                config["aws_secret_access_key"] = self.settings.asset_secret_access_key

            self._client = boto3.client("s3", **config)
            logger.info(f"Asset catalog client initialized for bucket: {self.settings.asset_bucket}")

        return self._client

    def list_clips(self, category_prefix: str) -> list[str]:
        """
        List clip keys under <root>/<category_prefix>/.

        Args:
            category_prefix: Catalog folder name for one category spelling

        Returns:
            Sorted list of object keys with a video extension

        Raises:
            AssetCatalogError: If the catalog is unconfigured or unreachable
        """
        if not self.is_configured:
            raise AssetCatalogError("Asset bucket not configured")

        root = self.settings.asset_root_prefix.strip("/")
        prefix = f"{root}/{category_prefix.strip('/')}/" if root else f"{category_prefix.strip('/')}/"

        keys: list[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.settings.asset_bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    key = obj.get("Key", "")
                    if key.lower().endswith(VIDEO_EXTENSIONS):
                        keys.append(key)
        except (BotoCoreError, ClientError) as e:
            raise AssetCatalogError(f"Failed to list s3://{self.settings.asset_bucket}/{prefix}: {e}")

        logger.debug(f"Catalog prefix {prefix}: {len(keys)} clips")
        return sorted(keys)

    def clip_url(self, key: str, expires_in: int = 3600) -> str:
        """Public URL for a key, or a presigned URL if no public base is set."""
        base = (self.settings.background_base_url or "").rstrip("/")
        if base:
            root = self.settings.asset_root_prefix.strip("/")
            relative = key[len(root) + 1:] if root and key.startswith(f"{root}/") else key
            return f"{base}/{relative}"

        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.settings.asset_bucket, "Key": key},
            ExpiresIn=expires_in,
        )


class AssetCatalogError(Exception):
    """Exception raised when the asset catalog cannot be listed."""
    pass
