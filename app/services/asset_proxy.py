# services/asset_proxy.py
"""
Pass-through fetch of generated assets for the browser viewer.

Only hosts on the allow-list (or their subdomains) are fetched.
"""

from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests

from core.config import settings
from core.errors import DomainNotAllowed, InvalidInput, ServiceError, UpstreamError
from core.logger import logger

ALLOWED_DOMAINS: List[str] = [
    # Meshy (models + textures)
    "assets.meshy.ai",
    "api.meshy.ai",
    "meshy.ai",
    # Google Cloud Storage (Meshy CDN)
    "storage.googleapis.com",
    "storage.cloud.google.com",
    # Blockade Labs (skyboxes)
    "blockadelabs.com",
    "backend.blockadelabs.com",
    "cdn.blockadelabs.com",
    "api.blockadelabs.com",
    "skybox.blockadelabs.com",
    "blockadelabs-skybox-uploads.s3.amazonaws.com",
    "blockadelabs-skybox.s3.amazonaws.com",
    "blockadelabs-skybox.s3.us-east-1.amazonaws.com",
    "blockadelabs-skybox.s3.us-west-2.amazonaws.com",
    # AWS S3
    "s3.amazonaws.com",
    "s3.us-west-2.amazonaws.com",
    "s3.us-east-1.amazonaws.com",
    # Cloudfront
    "cloudfront.net",
]

CONTENT_TYPES = {
    # 3D model formats
    ".glb": "model/gltf-binary",
    ".gltf": "model/gltf+json",
    ".bin": "application/octet-stream",
    ".obj": "text/plain",
    ".mtl": "text/plain",
    ".fbx": "application/octet-stream",
    # Textures
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tga": "image/x-tga",
    # Environment maps
    ".hdr": "image/vnd.radiance",
    ".exr": "image/x-exr",
    # Compressed textures
    ".ktx": "image/ktx",
    ".ktx2": "image/ktx2",
    ".basis": "application/octet-stream",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"

UPSTREAM_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; BioQuest-VR/1.0)",
    "Accept": "image/*, model/*, application/octet-stream, */*",
    "Accept-Encoding": "gzip, deflate",
}


def fix_url_encoding(url: str) -> str:
    """Decode once when the URL looks double-encoded (%25 = encoded %)."""
    if "%25" in url:
        decoded = unquote(url)
        logger.info(f"[PROXY] Fixed double-encoding: {url[:50]}... -> {decoded[:50]}...")
        return decoded
    return url


def is_allowed_domain(url: str) -> bool:
    hostname = (urlparse(url).hostname or "").lower()
    if not hostname:
        logger.error(f"[PROXY] Invalid URL for domain check: {url[:80]}")
        return False
    allowed = any(hostname == domain or hostname.endswith(f".{domain}") for domain in ALLOWED_DOMAINS)
    if not allowed:
        logger.warning(f"[PROXY] Domain not whitelisted: {hostname}")
    return allowed


def guess_content_type(url: str) -> str:
    path = urlparse(url).path.lower()
    for ext, content_type in CONTENT_TYPES.items():
        if path.endswith(ext):
            return content_type
    return DEFAULT_CONTENT_TYPE


class AssetProxy:

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 60.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, raw_url: Optional[str]) -> Tuple[bytes, str]:
        """
        Returns:
            (body, content_type)

        Raises:
            InvalidInput: url missing
            DomainNotAllowed: host not on the allow-list
            UpstreamError: upstream non-2xx (status passed through)
            ServiceError: transport failure (500)
        """
        if not raw_url:
            raise InvalidInput("URL parameter required")

        url = fix_url_encoding(raw_url)
        logger.info(f"[PROXY] Request for: {url[:80]}...")

        if not is_allowed_domain(url):
            raise DomainNotAllowed(url)

        try:
            resp = self.session.get(url, headers=UPSTREAM_HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"[PROXY] Fetch failed: {e} for {url[:80]}")
            raise ServiceError(f"Proxy failed: {e}") from e

        if not resp.ok:
            logger.error(f"[PROXY] Upstream error {resp.status_code} for: {url[:80]}")
            raise UpstreamError(resp.status_code, url)

        content_type = resp.headers.get("content-type") or guess_content_type(url)
        logger.info(f"[PROXY] Success: {len(resp.content)} bytes, type: {content_type}")
        return resp.content, content_type


asset_proxy = AssetProxy(timeout=settings.ASSET_PROXY_TIMEOUT_SECONDS)
