"""
Cloudflare R2 asset store.

R2 is S3-compatible, so boto3 is used with a custom endpoint. boto3 is
synchronous; every call runs in a small thread pool.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import config
from ..errors import PersistenceError
from .base import AssetStore

logger = logging.getLogger(__name__)

# Thread pool for async boto3 operations
_executor = ThreadPoolExecutor(max_workers=4)

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class R2AssetStore(AssetStore):
    """Asset store backed by an R2 bucket."""

    def __init__(
        self,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        bucket_name: Optional[str] = None,
        public_url: Optional[str] = None,
        client=None,
    ) -> None:
        self.account_id = account_id or config.r2_account_id
        self.bucket_name = bucket_name or config.r2_bucket_name
        self.public_base = (public_url or config.r2_public_url).rstrip("/")

        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=f"https://{self.account_id}.r2.cloudflarestorage.com",
                aws_access_key_id=access_key_id or config.r2_access_key_id,
                aws_secret_access_key=secret_access_key or config.r2_secret_access_key,
                config=BotoConfig(
                    signature_version="s3v4",
                    retries={"max_attempts": 3, "mode": "adaptive"},
                ),
                region_name="auto",
            )
        self.client = client
        logger.info(f"Initialized R2 store (bucket: {self.bucket_name})")

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_executor, partial(fn, *args, **kwargs))

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await self._run(
                self.client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"R2 upload failed for key={key}: {e}")
            raise PersistenceError(f"Failed to write {key}: {e}", key=key) from e

        logger.debug(f"Uploaded {key} ({len(data)} bytes)")
        return self.public_url(key)

    async def get(self, key: str) -> bytes:
        try:
            response = await self._run(
                self.client.get_object, Bucket=self.bucket_name, Key=key
            )
            return await self._run(response["Body"].read)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _MISSING_CODES:
                raise PersistenceError(f"Missing asset: {key}", key=key) from e
            raise PersistenceError(f"Failed to read {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise PersistenceError(f"Failed to read {key}: {e}", key=key) from e

    async def exists(self, key: str) -> bool:
        try:
            await self._run(self.client.head_object, Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _MISSING_CODES:
                return False
            raise PersistenceError(f"Failed to check {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise PersistenceError(f"Failed to check {key}: {e}", key=key) from e

    async def list_prefixes(self, prefix: str) -> List[str]:
        prefix = prefix if prefix.endswith("/") or not prefix else f"{prefix}/"
        names: List[str] = []
        token = None
        try:
            while True:
                kwargs = {"Bucket": self.bucket_name, "Prefix": prefix, "Delimiter": "/"}
                if token:
                    kwargs["ContinuationToken"] = token
                page = await self._run(self.client.list_objects_v2, **kwargs)
                for common in page.get("CommonPrefixes", []):
                    names.append(common["Prefix"][len(prefix):].strip("/"))
                if not page.get("IsTruncated"):
                    break
                token = page.get("NextContinuationToken")
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Failed to list {prefix}: {e}", key=prefix) from e
        return names

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        token = None
        try:
            while True:
                kwargs = {"Bucket": self.bucket_name, "Prefix": prefix}
                if token:
                    kwargs["ContinuationToken"] = token
                page = await self._run(self.client.list_objects_v2, **kwargs)
                keys = [{"Key": obj["Key"]} for obj in page.get("Contents", [])]
                if keys:
                    await self._run(
                        self.client.delete_objects,
                        Bucket=self.bucket_name,
                        Delete={"Objects": keys, "Quiet": True},
                    )
                    deleted += len(keys)
                if not page.get("IsTruncated"):
                    break
                token = page.get("NextContinuationToken")
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Failed to delete {prefix}: {e}", key=prefix) from e

        logger.info(f"Deleted {deleted} objects under {prefix}")
        return deleted
