import logging
import time
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, urlencode

import httpx

from app.config import Settings
from app.errors import ObjectExistsError, StorageError
from app.signing import URLSigner

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
        overwrite: bool = False,
    ) -> None: ...

    def sign_url(self, key: str, ttl_seconds: int, *, force_download: bool = False) -> str: ...

    def delete(self, key: str) -> None: ...


class LocalObjectStore:
    """Private directory store whose links are served back by this app.

    No per-object metadata is kept: ``content_type`` and ``cache_control`` are
    only logged, and the object route replays the service-wide values.
    """

    def __init__(
        self,
        root_dir: str,
        *,
        signer: URLSigner,
        public_base_url: str,
        clock: Callable[[], float] = time.time,
    ):
        self.root = Path(root_dir)
        self.signer = signer
        self.public_base_url = public_base_url.rstrip("/")
        self._clock = clock

    def init(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        root = self.root.resolve()
        target = (root / key).resolve()
        if target.parent != root:
            raise StorageError(f"key escapes storage root: {key!r}")
        return target

    def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
        overwrite: bool = False,
    ) -> None:
        target = self.path_for(key)
        mode = "wb" if overwrite else "xb"
        opened = False
        try:
            self.init()
            with target.open(mode) as f:
                opened = True
                f.write(data)
        except FileExistsError as exc:
            raise ObjectExistsError(f"object already exists: {key}") from exc
        except OSError as exc:
            if opened:
                with suppress(OSError):
                    target.unlink()
            raise StorageError(f"could not write {key}: {exc}") from exc
        logger.debug("stored %s (%d bytes, %s)", key, len(data), content_type)

    def sign_url(self, key: str, ttl_seconds: int, *, force_download: bool = False) -> str:
        if not self.path_for(key).exists():
            raise StorageError(f"object not found: {key}")

        expires_at = int(self._clock()) + ttl_seconds
        params = {
            "exp": expires_at,
            "sig": self.signer.sign(key=key, expires_at=expires_at, download=force_download),
        }
        if force_download:
            params["download"] = 1
        return f"{self.public_base_url}/v1/objects/{quote(key)}?{urlencode(params)}"

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except OSError as exc:
            raise StorageError(f"could not delete {key}: {exc}") from exc


class SupabaseObjectStore:
    """Supabase Storage bucket accessed over its REST API."""

    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        bucket: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.storage_url = url.rstrip("/") + "/storage/v1"
        self.bucket = bucket
        self._client = httpx.Client(
            base_url=self.storage_url,
            headers={"Authorization": f"Bearer {api_key}", "apikey": api_key},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(f"{method} {path} failed: {exc}") from exc
        if response.status_code == 409:
            raise ObjectExistsError(f"{method} {path} conflict: {response.text}")
        if response.is_error:
            raise StorageError(f"{method} {path} returned {response.status_code}: {response.text}")
        return response

    def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
        overwrite: bool = False,
    ) -> None:
        self._request(
            "POST",
            f"/object/{self.bucket}/{quote(key)}",
            content=data,
            headers={
                "content-type": content_type,
                "cache-control": f"max-age={cache_control}",
                "x-upsert": "true" if overwrite else "false",
            },
        )

    def sign_url(self, key: str, ttl_seconds: int, *, force_download: bool = False) -> str:
        response = self._request(
            "POST",
            f"/object/sign/{self.bucket}/{quote(key)}",
            json={"expiresIn": ttl_seconds},
        )
        try:
            signed_path = response.json()["signedURL"]
        except (ValueError, KeyError, TypeError) as exc:
            raise StorageError(f"unexpected sign response: {response.text}") from exc

        url = self.storage_url + signed_path
        if force_download:
            url += "&download="
        return url

    def delete(self, key: str) -> None:
        self._request("DELETE", f"/object/{self.bucket}", json={"prefixes": [key]})


def build_object_store(settings: Settings, *, clock: Callable[[], float] = time.time) -> ObjectStore:
    if settings.storage_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError("supabase_url and supabase_key are required for the supabase backend")
        return SupabaseObjectStore(
            url=settings.supabase_url,
            api_key=settings.supabase_key,
            bucket=settings.supabase_bucket,
            timeout=settings.supabase_timeout_seconds,
        )
    return LocalObjectStore(
        settings.storage_dir,
        signer=URLSigner(settings.app_secret_key),
        public_base_url=settings.public_base_url,
        clock=clock,
    )
