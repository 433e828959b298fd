"""Redirect-following HTTP download into a local file.

Automatic redirects are disabled on the client so the number of hops can
be bounded: public bucket URLs usually answer directly or with a single
redirect to a signed location, anything longer is treated as a failure.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from mediaslot.errors import DownloadError

logger = logging.getLogger(__name__)


async def download_to_file(
    url: str,
    dest: Path,
    *,
    client: Optional[httpx.AsyncClient] = None,
    max_redirects: int = 5,
    timeout: Optional[float] = 600.0,
    chunk_size: int = 1024 * 1024,
) -> int:
    """Stream url into dest, following at most max_redirects redirects.

    Args:
        url: Absolute URL to fetch
        dest: Local file to (over)write
        client: httpx client to use; a temporary one is created if None
        max_redirects: Maximum 3xx hops to follow before failing
        timeout: Overall time limit in seconds for the whole download
        chunk_size: Streaming chunk size in bytes

    Returns:
        Number of bytes written to dest

    Raises:
        DownloadError: On network errors, non-2xx responses, a 3xx without
            Location, too many redirects, timeout, or local write failure
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(follow_redirects=False)

    try:
        return await asyncio.wait_for(
            _stream_to_file(client, url, dest, max_redirects, chunk_size),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise DownloadError(f"Download of {url} timed out after {timeout}s") from e
    finally:
        if owns_client:
            await client.aclose()


async def _stream_to_file(
    client: httpx.AsyncClient,
    url: str,
    dest: Path,
    max_redirects: int,
    chunk_size: int,
) -> int:
    current_url = url
    redirects = 0

    while True:
        logger.info("GET %s", current_url)
        try:
            async with client.stream("GET", current_url, follow_redirects=False) as response:
                status = response.status_code

                if 300 <= status < 400:
                    location = response.headers.get("location")
                    if not location:
                        raise DownloadError(
                            f"HTTP {status} without Location header from {current_url}"
                        )
                    redirects += 1
                    if redirects > max_redirects:
                        raise DownloadError(
                            f"Too many redirects fetching {url} (limit {max_redirects})"
                        )
                    current_url = str(response.url.join(location))
                    logger.info("  redirect %d -> %s", redirects, current_url)
                    continue

                if not response.is_success:
                    raise DownloadError(f"HTTP {status} fetching {current_url}")

                written = 0
                with open(dest, "wb") as f:
                    async for chunk in response.aiter_bytes(chunk_size):
                        f.write(chunk)
                        written += len(chunk)

                logger.info("  downloaded %d bytes -> %s", written, dest)
                return written

        except httpx.HTTPError as e:
            raise DownloadError(f"Network error fetching {current_url}: {e}") from e
        except OSError as e:
            raise DownloadError(f"Failed to write {dest}: {e}") from e
