"""
Authorized uploads to the file service.

Any tool that produces a file (screenshots, generated documents) hands the
bytes to upload_file(), which attaches a bearer token from the lifecycle
manager and returns the stored file's links.
"""

import logging
from typing import Optional

import httpx

from toolgate.errors import UploadFailed
from toolgate.schemas import UploadedFile
from toolgate.token_manager import TokenLifecycleManager
from toolgate.utils import HTTP_TIMEOUT, UPLOADER_URL

logger = logging.getLogger(__name__)


class Uploader:
    """Posts files to the upload service with a managed bearer token."""

    def __init__(self, token_manager: TokenLifecycleManager, default_backend,
                 url: str = UPLOADER_URL, client: Optional[httpx.Client] = None,
                 timeout: float = HTTP_TIMEOUT):
        self.token_manager = token_manager
        self.default_backend = default_backend
        self.url = url
        self._client = client
        self.timeout = timeout

    def _post(self, **kwargs) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self.url, timeout=self.timeout, **kwargs)
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(self.url, **kwargs)

    def upload_file(
        self,
        content: bytes,
        file_name: str,
        mime_type: str = "application/octet-stream",
        set_public: bool = True,
        re_upload: bool = True,
        backend=None,
    ) -> UploadedFile:
        """
        Upload one file.

        Args:
            content: Raw file bytes
            file_name: Name to store the file under
            mime_type: Content type of the file part
            set_public: Ask the service to make the file publicly readable
            re_upload: Replace an existing file with the same name
            backend: Token store to use (defaults to the configured one)

        Returns:
            UploadedFile with download and view links

        Raises:
            UploadFailed: If the service errors or returns no file
            IssuerUnavailable / PersistenceError: From token acquisition
        """
        if not file_name:
            file_name = "upload.bin"

        token = self.token_manager.get_token(backend or self.default_backend)

        try:
            response = self._post(
                headers={"Authorization": f"Bearer {token}"},
                files={"file": (file_name, content, mime_type)},
                data={
                    "fileName": file_name,
                    "setPublic": "true" if set_public else "false",
                    "reUpload": "true" if re_upload else "false",
                },
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Upload of %s rejected with %s", file_name, e.response.status_code)
            raise UploadFailed(f"Upload rejected with status {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Upload of %s failed: %s", file_name, e)
            raise UploadFailed(f"Upload failed: {e}") from e

        try:
            uploaded = body["data"]["files"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise UploadFailed("Upload response did not include the stored file") from e

        logger.info("Uploaded %s (%d bytes)", file_name, len(content))
        return UploadedFile(**{k: uploaded.get(k) for k in UploadedFile.model_fields})
