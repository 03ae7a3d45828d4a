"""
OCR Service for OTW

Thin HTTP client for the text-extraction service that reads receipt images.

    POST {OCR_SERVICE_URL}/extract  {"image_url": "..."}
    -> {"text": "...", "confidence": 0.93}
"""

import logging
import requests
from typing import Optional
from django.conf import settings

logger = logging.getLogger(__name__)


class OcrError(Exception):
    """The OCR service answered, but not with a usable extraction."""


class OcrClient:
    """
    Text extraction collaborator.

    Network failures propagate as ``requests.RequestException`` so the
    calling Celery task can retry; malformed answers raise ``OcrError``.
    """

    EXTRACT_PATH = "/extract"

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        if base_url is None:
            base_url = getattr(settings, 'OCR_SERVICE_URL', '')
        self.base_url = base_url.rstrip('/')
        self.token = token if token is not None else getattr(settings, 'OCR_SERVICE_TOKEN', '')
        self.timeout = timeout or getattr(settings, 'OCR_TIMEOUT_SECONDS', 15)

    def is_configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def extract(self, image_url: str) -> dict:
        """
        Extract text from a receipt image.

        Args:
            image_url: Publicly reachable URL of the uploaded receipt

        Returns:
            {'text': str, 'confidence': float | None}
        """
        if not self.is_configured():
            raise OcrError("OCR service is not configured")

        url = f"{self.base_url}{self.EXTRACT_PATH}"
        try:
            response = requests.post(
                url,
                headers=self._headers(),
                json={"image_url": image_url},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"[RECEIPT] OCR request failed: {e}")
            raise

        try:
            data = response.json()
        except ValueError:
            logger.error(f"[RECEIPT] OCR returned non-JSON body ({response.status_code})")
            raise OcrError("OCR service returned an invalid response")

        if not isinstance(data, dict):
            raise OcrError("OCR service returned an invalid response")

        text = data.get('text') or ''
        logger.info(f"[RECEIPT] OCR extracted {len(text)} chars (confidence: {data.get('confidence')})")
        return {
            'text': str(text),
            'confidence': data.get('confidence'),
        }
