"""
Storage Service Client for Custom Quote Service

Uploads quote reference images and returns their public URLs
"""

import httpx
import logging
import uuid
from typing import Optional

from core.config import ServiceConfig
from ..protocols import UploadError

logger = logging.getLogger(__name__)

SYSTEM_UPLOADER_ID = "custom_quote_service"


class StorageClient:
    """Client for the file storage service"""

    def __init__(self, base_url: Optional[str] = None, config: Optional[ServiceConfig] = None):
        """
        Initialize storage client

        Args:
            base_url: Storage service base URL (overrides config)
            config: Service config with storage endpoint, bucket and timeout
        """
        config = config or ServiceConfig.from_env()
        self.base_url = (base_url or config.storage_service_url).rstrip('/')
        self.bucket = config.storage_bucket

        self.client = httpx.AsyncClient(
            timeout=config.storage_timeout,
            headers={"X-Service-Name": "custom_quote_service"},
        )
        logger.info(f"StorageClient initialized with base_url: {self.base_url}")

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        user_id: Optional[str] = None,
    ) -> str:
        """
        Upload one image as a public file

        Args:
            filename: Original filename (extension is kept)
            content: Binary file content
            content_type: MIME type
            user_id: Owner of the file

        Returns:
            Public download URL

        Raises:
            UploadError: storage rejected the file or was unreachable
        """
        extension = filename.rsplit('.', 1)[-1] if '.' in filename else "bin"
        stored_name = f"quote_{uuid.uuid4().hex}.{extension}"

        files = {'file': (stored_name, content, content_type)}
        data = {
            'user_id': user_id or SYSTEM_UPLOADER_ID,
            'access_level': 'public',
            'tags': f"{self.bucket},custom_quote",
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/api/v1/storage/files/upload",
                files=files,
                data=data,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to upload {filename}: {e.response.status_code}")
            raise UploadError(f"Storage rejected {filename} ({e.response.status_code})")
        except httpx.HTTPError as e:
            logger.error(f"Error uploading {filename}: {e}")
            raise UploadError(f"Storage unavailable while uploading {filename}: {e}")

        result = response.json()
        url = result.get('download_url') or result.get('file_path')
        if not url:
            raise UploadError(f"Storage returned no URL for {filename}")

        logger.info(f"Uploaded {filename} as {result.get('file_id', stored_name)}")
        return url
