"""
Evidence store adapters.

Check-in and check-out photos are uploaded before the attendance record is
written. ``upload`` either returns a durable URL or raises ``UploadError``;
nothing is retried here.
"""

import mimetypes
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

from app.core.config import Settings, settings
from app.core.errors import UploadError, ValidationError
from app.core.logging import get_logger
from app.models.attendance import Evidence

logger = get_logger(__name__)


class EvidenceStore(ABC):
    """Durable storage for photographic evidence."""

    @abstractmethod
    async def upload(
        self, content: bytes, filename: str, content_type: Optional[str] = None
    ) -> str:
        """Store ``content`` and return its URL, or raise ``UploadError``."""


class LocalEvidenceStore(EvidenceStore):
    """Filesystem-backed store, served from ``EVIDENCE_PUBLIC_BASE_URL``."""

    def __init__(self, base_dir: str, public_base_url: str):
        self.base_dir = Path(base_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _key_for(self, filename: str) -> str:
        clean = filename.lstrip("/").replace("..", "").replace("\\", "/")
        path = Path(clean)
        return str(path.with_name(f"{path.stem}-{uuid.uuid4().hex[:12]}{path.suffix}"))

    async def upload(
        self, content: bytes, filename: str, content_type: Optional[str] = None
    ) -> str:
        key = self._key_for(filename)
        path = self.base_dir / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            logger.error(f"Failed to write evidence {key}: {e}")
            raise UploadError("Evidence upload failed, please retry") from e
        logger.info(f"Stored evidence {key} ({len(content)} bytes)")
        return f"{self.public_base_url}/{key}"


class HttpEvidenceStore(EvidenceStore):
    """Uploads evidence to an external media service over HTTP."""

    def __init__(
        self,
        upload_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upload_url = upload_url
        self.token = token
        self.timeout = timeout
        self.transport = transport

    async def upload(
        self, content: bytes, filename: str, content_type: Optional[str] = None
    ) -> str:
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.upload_url,
                    files={"file": (filename, content, content_type)},
                    headers=headers,
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Evidence service rejected upload of {filename} "
                f"(status: {e.response.status_code})"
            )
            raise UploadError("Evidence upload failed, please retry") from e
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"Error uploading evidence {filename}: {e}")
            raise UploadError("Evidence upload failed, please retry") from e

        url = body.get("secure_url") or body.get("url")
        if not url:
            logger.error(f"Evidence service returned no URL for {filename}")
            raise UploadError("Evidence upload failed, please retry")
        return url


def validate_evidence(evidence: Optional[Evidence], config: Settings = settings) -> Evidence:
    """
    Check that an evidence payload is present and acceptable.

    Raises:
        ValidationError: if evidence is missing, empty, too large or of a
            content type that is not allowed
    """
    if evidence is None or not evidence.content:
        raise ValidationError("Photo evidence is required")
    if len(evidence.content) > config.EVIDENCE_MAX_BYTES:
        raise ValidationError(
            f"Photo evidence exceeds {config.EVIDENCE_MAX_BYTES // (1024 * 1024)}MB limit"
        )
    if (
        evidence.content_type
        and evidence.content_type not in config.EVIDENCE_ALLOWED_CONTENT_TYPES
    ):
        raise ValidationError(
            f"File type {evidence.content_type} not allowed. Allowed types: "
            f"{', '.join(config.EVIDENCE_ALLOWED_CONTENT_TYPES)}"
        )
    return evidence


def build_evidence_store(config: Settings = settings) -> EvidenceStore:
    """Create the configured evidence backend."""
    if config.EVIDENCE_BACKEND == "http":
        if not config.EVIDENCE_UPLOAD_URL:
            raise RuntimeError("EVIDENCE_UPLOAD_URL is required for the http evidence backend")
        return HttpEvidenceStore(
            config.EVIDENCE_UPLOAD_URL,
            token=config.EVIDENCE_UPLOAD_TOKEN,
            timeout=config.EVIDENCE_UPLOAD_TIMEOUT,
        )
    return LocalEvidenceStore(config.EVIDENCE_LOCAL_DIR, config.EVIDENCE_PUBLIC_BASE_URL)
