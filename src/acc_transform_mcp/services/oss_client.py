"""Object Storage Service helpers shared by the ACC and Design Automation clients."""

import math
from typing import Any, Dict, List
from urllib.parse import quote

from ..api_schema import get_endpoint
from ..exceptions import RemoteRequestFailedError, UploadIncompleteError
from ..logging import get_logger
from .http_client import ApsHttpClient


logger = get_logger(__name__)


def _object_path(name: str, bucket_key: str, object_key: str) -> str:
    return get_endpoint(name, bucket_key=bucket_key, object_key=quote(object_key, safe=""))


class OssClient(ApsHttpClient):
    """Buckets, signed URLs and signed S3 transfers.

    Upload slot URLs and download URLs are pre-signed: they are fetched
    without the bearer token.
    """

    async def create_bucket(self, token: str, bucket_key: str, policy: str = "transient") -> bool:
        """Create a bucket. Returns False when it already exists (HTTP 409)."""
        response = await self._request(
            "POST",
            get_endpoint("buckets"),
            operation="Create bucket",
            token=token,
            json={"bucketKey": bucket_key, "policyKey": policy},
            accept_status=(409,),
        )
        created = response.status_code != 409
        logger.info("Bucket ready", bucket_key=bucket_key, created=created)
        return created

    async def create_signed_url(
        self,
        token: str,
        bucket_key: str,
        object_key: str,
        access: str = "read",
        minutes: int = 30,
    ) -> str:
        """Create a signed resource URL for an object."""
        operation = "Create signed URL"
        response = await self._request(
            "POST",
            _object_path("signed_resource", bucket_key, object_key),
            operation=operation,
            token=token,
            params={"access": access},
            json={"minutesExpiration": minutes},
        )
        signed_url = self._json(response, operation).get("signedUrl")
        if not signed_url:
            raise RemoteRequestFailedError(operation, response.status_code, response.text,
                                           reason="no signedUrl in response")
        return signed_url

    async def get_signed_download_url(self, token: str, bucket_key: str, object_key: str) -> str:
        """Get a signed S3 download URL for an object."""
        operation = "Get signed download URL"
        response = await self._request(
            "GET",
            _object_path("signed_download", bucket_key, object_key),
            operation=operation,
            token=token,
        )
        url = self._json(response, operation).get("url")
        if not url:
            raise RemoteRequestFailedError(operation, response.status_code, response.text,
                                           reason="no url in response")
        return url

    async def download_object(self, token: str, bucket_key: str, object_key: str) -> bytes:
        """Download an object's bytes through a signed S3 URL."""
        url = await self.get_signed_download_url(token, bucket_key, object_key)
        response = await self._request(
            "GET",
            url,
            operation="Download object",
            timeout=self.config.transfer_timeout,
        )
        logger.info(
            "Object downloaded",
            bucket_key=bucket_key,
            object_key=object_key,
            size=len(response.content),
        )
        return response.content

    async def fetch_signed(self, url: str, operation: str) -> bytes:
        """GET a pre-signed URL and return its body."""
        response = await self._request(
            "GET", url, operation=operation, timeout=self.config.transfer_timeout
        )
        return response.content

    def _part_count(self, size: int) -> int:
        return max(1, math.ceil(size / self.config.upload_chunk_size))

    async def upload_object(
        self,
        token: str,
        bucket_key: str,
        object_key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> Dict[str, Any]:
        """Upload bytes with the three-phase signed S3 upload.

        Phases run strictly in order and are never retried; the first
        failure raises UploadIncompleteError and nothing is cleaned up.

        Returns:
            The finalize response (object details)

        Raises:
            UploadIncompleteError: A phase failed
        """
        parts = self._part_count(len(data))
        path = _object_path("signed_upload", bucket_key, object_key)

        def incomplete(phase: str, error: RemoteRequestFailedError) -> UploadIncompleteError:
            return UploadIncompleteError(
                phase, bucket_key, object_key,
                status_code=error.status_code,
                body=error.body or error.message,
            )

        # Phase 1: upload slot
        try:
            response = await self._request(
                "GET", path,
                operation="Request upload slot",
                token=token,
                params={"firstPart": 1, "parts": parts},
                retry=False,
            )
            slot = self._json(response, "Request upload slot")
        except RemoteRequestFailedError as e:
            raise incomplete("request_slot", e)

        upload_key = slot.get("uploadKey")
        urls: List[str] = slot.get("urls") or []
        if not upload_key or len(urls) < parts:
            raise UploadIncompleteError(
                "request_slot", bucket_key, object_key,
                body=f"expected {parts} url(s) and an uploadKey, got {len(urls)} url(s)",
            )

        # Phase 2: parts
        chunk = self.config.upload_chunk_size
        for index, url in enumerate(urls[:parts]):
            try:
                await self._request(
                    "PUT", url,
                    operation="Upload part",
                    content=data[index * chunk:(index + 1) * chunk],
                    headers={"Content-Type": content_type},
                    timeout=self.config.transfer_timeout,
                    retry=False,
                )
            except RemoteRequestFailedError as e:
                raise incomplete("put_part", e)

        # Phase 3: finalize
        try:
            response = await self._request(
                "POST", path,
                operation="Finalize upload",
                token=token,
                json={"uploadKey": upload_key},
                retry=False,
            )
        except RemoteRequestFailedError as e:
            raise incomplete("finalize", e)

        logger.info(
            "Object uploaded",
            bucket_key=bucket_key,
            object_key=object_key,
            size=len(data),
            parts=parts,
        )
        try:
            return response.json()
        except ValueError:
            return {}
