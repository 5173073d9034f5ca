import httpx
from typing import Optional
import logging

from carbon_credit.errors import UploadError, ValidationError
from carbon_credit.models import MediaFile

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 10 * 1024 * 1024  # 10 MiB


class MediaUploadClient:
    """Content-addressed evidence store backed by the IPFS RPC API"""

    def __init__(self, api_url: str, max_size: int = DEFAULT_MAX_SIZE,
                 timeout: float = 30.0, transport: httpx.AsyncBaseTransport = None):
        self.api_url = api_url.rstrip("/")
        self.max_size = max_size
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def validate(self, file: MediaFile, max_size: Optional[int] = None,
                 allowed_type_class: str = "image"):
        """Reject oversize or wrongly typed files before touching the store"""
        limit = max_size if max_size is not None else self.max_size
        if file.size > limit:
            raise ValidationError(
                f"File size too large. Maximum size is {limit // (1024 * 1024)}MB."
            )
        if not file.content_type.lower().startswith(f"{allowed_type_class}/"):
            raise ValidationError(f"Only {allowed_type_class} files are allowed.")

    async def upload(self, file: MediaFile, max_size: Optional[int] = None,
                     allowed_type_class: str = "image") -> str:
        """Store a file and return its content hash"""
        self.validate(file, max_size, allowed_type_class)

        logger.info(f"Uploading {file.filename} ({file.size} bytes) to IPFS")
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_url}/api/v0/add",
                    params={"pin": "true"},
                    files={"file": (file.filename, file.data, file.content_type)}
                )
        except httpx.HTTPError as e:
            logger.error(f"IPFS upload error: {e}")
            raise UploadError(f"IPFS Upload Error: {e}") from e

        if response.status_code != 200:
            message = self._store_message(response)
            logger.error(f"IPFS upload rejected ({response.status_code}): {message}")
            raise UploadError(f"IPFS Upload Error: {message}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        content_hash = body.get("Hash") if isinstance(body, dict) else None
        if not content_hash:
            raise UploadError("IPFS Upload Error: store returned no content hash")

        logger.info(f"Uploaded {file.filename} as {content_hash}")
        return content_hash

    async def get(self, content_hash: str) -> Optional[bytes]:
        """Fetch stored bytes; a blank or unknown hash means there is no image"""
        if not content_hash:
            return None

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_url}/api/v0/cat",
                    params={"arg": content_hash}
                )
        except httpx.HTTPError as e:
            raise UploadError(f"IPFS read error for {content_hash}: {e}") from e

        if response.status_code != 200:
            logger.warning(f"No media for {content_hash}: {self._store_message(response)}")
            return None
        return response.content

    @staticmethod
    def _store_message(response: httpx.Response) -> str:
        # Kubo reports errors as {"Message": ..., "Code": ..., "Type": "error"}
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("Message"):
            return body["Message"]
        return response.text or f"HTTP {response.status_code}"
