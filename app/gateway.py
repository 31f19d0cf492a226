import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from app.errors import RejectionReason, StorageError, UploadRejected
from app.models import AccessGrant, UploadCandidate
from app.naming import NameGenerator
from app.ratelimit import FixedWindowRateLimiter
from app.storage import ObjectStore
from app.validation import ContentValidator

logger = logging.getLogger(__name__)

ONE_YEAR_SECONDS = 365 * 24 * 60 * 60
STORED_CONTENT_TYPE = "application/pdf"


class UploadGateway:
    """Admit, validate, store, then sign view and download links. Nothing is retried."""

    def __init__(
        self,
        *,
        store: ObjectStore,
        rate_limiter: FixedWindowRateLimiter,
        validator: ContentValidator,
        name_generator: NameGenerator,
        grant_ttl_seconds: int = ONE_YEAR_SECONDS,
        cache_control: str = "3600",
        compensate_orphans: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.validator = validator
        self.name_generator = name_generator
        self.grant_ttl_seconds = grant_ttl_seconds
        self.cache_control = cache_control
        self.compensate_orphans = compensate_orphans
        self._clock = clock

    def admit(self, client_key: str) -> None:
        if not self.rate_limiter.admit(client_key):
            logger.info("rate limited client %s", client_key)
            raise UploadRejected(RejectionReason.RATE_LIMITED)

    def handle(self, candidate: UploadCandidate, client_key: str) -> AccessGrant:
        self.admit(client_key)
        return self.store_and_grant(candidate, client_key)

    def store_and_grant(self, candidate: UploadCandidate, client_key: str) -> AccessGrant:
        self.validator.validate(candidate)

        key = self.name_generator.generate(candidate.declared_name)

        try:
            self.store.put(
                key,
                candidate.data,
                content_type=STORED_CONTENT_TYPE,
                cache_control=self.cache_control,
                overwrite=False,
            )
        except StorageError:
            logger.exception("upload of %s failed", key)
            raise UploadRejected(RejectionReason.STORAGE_WRITE_FAILED) from None

        try:
            view_url = self.store.sign_url(key, self.grant_ttl_seconds)
            download_url = self.store.sign_url(key, self.grant_ttl_seconds, force_download=True)
        except StorageError:
            logger.exception("signed url generation for %s failed", key)
            if self.compensate_orphans:
                self._discard(key)
            raise UploadRejected(RejectionReason.GRANT_ISSUANCE_FAILED) from None

        expires_at = datetime.fromtimestamp(self._clock() + self.grant_ttl_seconds, tz=timezone.utc)
        logger.info("issued grant for %s from client %s", key, client_key)
        return AccessGrant(view_url=view_url, download_url=download_url, expires_at=expires_at)

    def _discard(self, key: str) -> None:
        try:
            self.store.delete(key)
        except StorageError:
            logger.warning("could not remove orphaned object %s", key, exc_info=True)
        else:
            logger.info("removed orphaned object %s", key)
