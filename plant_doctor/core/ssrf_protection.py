"""
SSRF protection for image downloads.

Background diagnosis tasks fetch images from user-supplied URLs. This module
validates those URLs and downloads the image without letting the request
reach internal services.

Key features:
- IP address blacklist validation (blocks private, loopback, link-local IPs)
- DNS rebinding prevention (the request goes to the validated IP)
- Content-Type validation (only image types)
- Size limit
"""

import ipaddress
import logging
import socket
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")
ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
)
MAX_IMAGE_SIZE_BYTES = 10 * 1024 * 1024  # 10MB
DOWNLOAD_TIMEOUT = 30  # seconds
DNS_TIMEOUT = 5  # seconds

_LOOPBACK_HOSTNAMES = ("localhost", "127.0.0.1", "::1", "0.0.0.0", "127.0.1.1")
_PRIVATE_PREFIXES = ("127.", "192.168.", "10.")


class SSRFValidationError(Exception):
    """Raised when an image URL is not allowed."""

    pass


class ImageDownloadError(Exception):
    """Raised when an image cannot be downloaded or is not acceptable."""

    pass


def _check_ip(hostname: str, ip: str) -> None:
    ip_obj = ipaddress.ip_address(ip)

    if ip_obj.is_loopback:
        raise SSRFValidationError(f"Loopback address not allowed: {hostname} -> {ip}")
    # 169.254.0.0/16 is also private, check it first for a precise message
    if ip_obj.is_link_local:
        raise SSRFValidationError(f"Link-local address not allowed: {hostname} -> {ip}")
    if ip_obj.is_private:
        raise SSRFValidationError(
            f"Private address not allowed: {hostname} -> {ip} (RFC 1918)"
        )
    if ip_obj.is_reserved:
        raise SSRFValidationError(f"Reserved address not allowed: {hostname} -> {ip}")
    if ip_obj.is_multicast:
        raise SSRFValidationError(f"Multicast address not allowed: {hostname} -> {ip}")


def validate_image_url(url: str) -> Tuple[str, str]:
    """
    Check that an image URL points to a public host.

    Every address the hostname resolves to must be public, otherwise a
    rebinding DNS server could hand out an internal address later.

    Args:
        url: Image URL to validate

    Returns:
        (ip_address, hostname): the first public IP to connect to, and the
        original hostname for the Host header

    Raises:
        SSRFValidationError: If the URL is not allowed

    Examples:
        >>> validate_image_url("https://example.com/image.jpg")  # doctest: +SKIP
        ('93.184.216.34', 'example.com')
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise SSRFValidationError(f"Invalid URL: {e}") from e

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise SSRFValidationError(
            f"Unsupported scheme: {parsed.scheme or '(none)'}. Allowed: {ALLOWED_SCHEMES}"
        )

    hostname = parsed.hostname
    if not hostname:
        raise SSRFValidationError("URL has no hostname")

    hostname_lower = hostname.lower()
    if hostname_lower in _LOOPBACK_HOSTNAMES:
        raise SSRFValidationError(f"Localhost/loopback address not allowed: {hostname}")

    # Reject obvious private literals before resolving
    if hostname_lower.startswith(_PRIVATE_PREFIXES):
        raise SSRFValidationError(f"Private address not allowed: {hostname}")

    try:
        socket.setdefaulttimeout(DNS_TIMEOUT)
        addr_info = socket.getaddrinfo(hostname, None)
        # Keep resolver order, drop duplicates
        ips = list(dict.fromkeys(addr[4][0] for addr in addr_info))
    except socket.timeout as e:
        # socket.timeout is an OSError, catch it first
        raise SSRFValidationError(f"DNS lookup timed out: {hostname}") from e
    except OSError as e:
        raise SSRFValidationError(f"DNS resolution failed: {hostname} - {e}") from e
    finally:
        socket.setdefaulttimeout(None)

    if not ips:
        raise SSRFValidationError(f"Hostname did not resolve to any address: {hostname}")

    public_ips = []
    for ip in ips:
        try:
            _check_ip(hostname, ip)
        except ValueError:
            logger.warning(f"Ignoring invalid IP address: {ip}")
            continue
        public_ips.append(ip)

    if not public_ips:
        raise SSRFValidationError(f"No public address found for {hostname}")

    selected_ip = public_ips[0]
    logger.info(f"URL validated: {hostname} -> {selected_ip}")
    return selected_ip, hostname


def _pinned_url(url: str, ip_address: str) -> str:
    parsed = urlparse(url)
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    host = f"[{ip_address}]" if ":" in ip_address else ip_address
    return parsed._replace(netloc=f"{host}:{port}").geturl()


async def download_image_securely_async(
    url: str,
    max_size: int = MAX_IMAGE_SIZE_BYTES,
    timeout: float = DOWNLOAD_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> bytes:
    """
    Download an image from a validated public URL.

    The request goes to the validated IP with the original Host header (and
    SNI hostname for HTTPS). Redirects are not followed.

    Args:
        url: Image URL
        max_size: Maximum accepted size in bytes
        timeout: Request timeout in seconds
        client: HTTP client to use; a short-lived one is created if omitted

    Returns:
        Image bytes

    Raises:
        ImageDownloadError: If validation, the download or a content check fails
    """
    try:
        ip_address, hostname = validate_image_url(url)
    except SSRFValidationError as e:
        raise ImageDownloadError(f"URL validation failed: {e}") from e

    target_url = _pinned_url(url, ip_address)
    headers = {
        "Host": hostname,
        "User-Agent": "Plant-Doctor-Diagnosis/1.0",
    }
    extensions = {"sni_hostname": hostname} if urlparse(url).scheme == "https" else {}

    logger.info(f"Downloading image: {hostname} -> {ip_address}")

    if client is not None:
        return await _download(client, target_url, headers, extensions, url, max_size)

    async with httpx.AsyncClient(timeout=timeout) as own_client:
        return await _download(own_client, target_url, headers, extensions, url, max_size)


async def _download(
    client: httpx.AsyncClient,
    target_url: str,
    headers: dict,
    extensions: dict,
    url: str,
    max_size: int,
) -> bytes:
    try:
        async with client.stream(
            "GET",
            target_url,
            headers=headers,
            extensions=extensions,
            follow_redirects=False,
        ) as response:
            if response.is_redirect:
                raise ImageDownloadError(f"Redirects are not allowed: {url}")
            response.raise_for_status()

            content_type = (
                response.headers.get("Content-Type", "").split(";")[0].strip().lower()
            )
            if content_type not in ALLOWED_IMAGE_TYPES:
                raise ImageDownloadError(
                    f"Unsupported content type: {content_type or '(none)'}. "
                    f"Allowed: {ALLOWED_IMAGE_TYPES}"
                )

            content_length = response.headers.get("Content-Length")
            if content_length and content_length.isdigit() and int(content_length) > max_size:
                raise ImageDownloadError(
                    f"Image too large: {content_length} bytes (max {max_size} bytes)"
                )

            image_data = bytearray()
            async for chunk in response.aiter_bytes(chunk_size=8192):
                image_data.extend(chunk)
                if len(image_data) > max_size:
                    raise ImageDownloadError(
                        f"Image too large: more than {max_size} bytes received"
                    )

    except httpx.TimeoutException:
        raise ImageDownloadError(f"Download timed out: {url}") from None
    except httpx.HTTPStatusError as e:
        raise ImageDownloadError(f"HTTP error {e.response.status_code}: {url}") from e
    except httpx.RequestError as e:
        raise ImageDownloadError(f"Download failed: {e} - {url}") from e

    logger.info(f"Image downloaded: {len(image_data)} bytes, type={content_type}")
    return bytes(image_data)
