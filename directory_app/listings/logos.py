import asyncio
import base64
import binascii
import re
import time

import httpx
import structlog

from directory_app.exceptions import StorageError
from directory_app.listings.storage import ObjectStorage

logger = structlog.get_logger()

DATA_URI_RE = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)
DEFAULT_EXTENSION = "png"
LOGO_PREFIX = "logos"


def slugify(business_name: str) -> str:
    return re.sub(r"[^a-z0-9]", "-", business_name, flags=re.IGNORECASE).lower()


def extension_from_content_type(content_type: str | None) -> str:
    """'image/jpeg; charset=binary' -> 'jpeg'; anything unparsable -> 'png'."""
    if not content_type or "/" not in content_type:
        return DEFAULT_EXTENSION
    subtype = content_type.split("/", 1)[1].split(";", 1)[0].strip()
    if not re.fullmatch(r"[\w+-]+", subtype):
        return DEFAULT_EXTENSION
    return subtype


class LogoResolver:
    """Turns a logo_url (data URI or http(s) URL) into a public storage URL.

    Failures to decode, fetch or upload are logged and yield None: a missing
    logo never fails an import row.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        client: httpx.AsyncClient,
        *,
        user_agent: str,
        timeout: float = 15.0,
        pause_seconds: float = 0.2,
        concurrency: int = 1,
    ) -> None:
        self._storage = storage
        self._client = client
        self._user_agent = user_agent
        self._timeout = timeout
        self._pause_seconds = pause_seconds
        self._semaphore = asyncio.Semaphore(concurrency)

    async def resolve(self, logo_url: str, business_name: str) -> str | None:
        async with self._semaphore:
            try:
                logger.info("logo_fetch_started", business_name=business_name, source=logo_url[:50])
                if logo_url.startswith("data:image"):
                    return await self._from_data_uri(logo_url, business_name)
                return await self._from_url(logo_url, business_name)
            except (
                httpx.HTTPError,
                httpx.InvalidURL,
                StorageError,
                binascii.Error,
                ValueError,
            ) as exc:
                logger.warning("logo_failed", business_name=business_name, error=str(exc))
                return None
            finally:
                await asyncio.sleep(self._pause_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _from_data_uri(self, logo_url: str, business_name: str) -> str | None:
        match = DATA_URI_RE.match(logo_url)
        if match is None:
            logger.warning("logo_data_uri_malformed", business_name=business_name)
            return None

        extension, encoded = match.group(1), match.group(2)
        data = base64.b64decode(encoded, validate=True)
        return await self._upload(data, f"image/{extension}", extension, business_name)

    async def _from_url(self, logo_url: str, business_name: str) -> str | None:
        response = await self._client.get(
            logo_url,
            headers={"User-Agent": self._user_agent},
            timeout=self._timeout,
            follow_redirects=True,
        )
        if not response.is_success:
            logger.warning(
                "logo_fetch_rejected", business_name=business_name, status=response.status_code
            )
            return None

        content_type = response.headers.get("content-type") or f"image/{DEFAULT_EXTENSION}"
        extension = extension_from_content_type(content_type)
        return await self._upload(response.content, content_type, extension, business_name)

    async def _upload(
        self, data: bytes, content_type: str, extension: str, business_name: str
    ) -> str:
        path = f"{LOGO_PREFIX}/{int(time.time() * 1000)}-{slugify(business_name)}.{extension}"
        await self._storage.upload(path, data, content_type)
        url = self._storage.public_url(path)
        logger.info("logo_uploaded", business_name=business_name, url=url)
        return url
