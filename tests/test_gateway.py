from datetime import datetime, timezone

import pytest

from app.errors import RejectionReason, StorageError, UploadRejected
from app.gateway import ONE_YEAR_SECONDS, UploadGateway
from app.models import UploadCandidate
from app.naming import NameGenerator
from app.ratelimit import FixedWindowRateLimiter
from app.validation import ContentValidator

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF"


def build_gateway(store, clock, **kwargs) -> UploadGateway:
    return UploadGateway(
        store=store,
        rate_limiter=FixedWindowRateLimiter(clock=clock),
        validator=ContentValidator(),
        name_generator=NameGenerator(clock),
        clock=clock,
        **kwargs,
    )


def pdf_candidate(name: str = "Resume.pdf", data: bytes = PDF_BYTES) -> UploadCandidate:
    return UploadCandidate(data=data, declared_name=name, declared_size=len(data))


def rejection(gateway, candidate, key="1.2.3.4") -> UploadRejected:
    with pytest.raises(UploadRejected) as exc_info:
        gateway.handle(candidate, key)
    return exc_info.value


def test_success_stores_then_signs_both_links(store, clock):
    grant = build_gateway(store, clock).handle(pdf_candidate(), "1.2.3.4")

    key = f"{int(clock.now * 1000)}-resume.pdf"
    assert store.objects == {key: PDF_BYTES}
    assert store.puts == [
        {"key": key, "content_type": "application/pdf", "cache_control": "3600", "overwrite": False}
    ]
    assert store.signs == [(key, ONE_YEAR_SECONDS, False), (key, ONE_YEAR_SECONDS, True)]
    assert grant.view_url.startswith(f"https://objects.test/{key}")
    assert grant.download_url.endswith("&download=")
    assert grant.expires_at == datetime.fromtimestamp(clock.now + ONE_YEAR_SECONDS, tz=timezone.utc)


def test_sixth_attempt_in_window_is_rate_limited(store, clock):
    gateway = build_gateway(store, clock)
    for _ in range(5):
        gateway.handle(pdf_candidate(), "1.2.3.4")
        clock.advance(1)

    rejected = rejection(gateway, pdf_candidate())
    assert rejected.reason is RejectionReason.RATE_LIMITED
    assert rejected.status_code == 429
    assert len(store.puts) == 5


def test_invalid_attempts_still_count_against_budget(store, clock):
    gateway = build_gateway(store, clock)
    for _ in range(5):
        assert rejection(gateway, pdf_candidate(data=b"NOTPDF")).reason is RejectionReason.NOT_A_PDF

    assert rejection(gateway, pdf_candidate()).reason is RejectionReason.RATE_LIMITED
    assert store.puts == []


def test_non_pdf_never_reaches_storage(store, clock):
    rejected = rejection(build_gateway(store, clock), pdf_candidate(data=b"NOTPDF..."))
    assert rejected.reason is RejectionReason.NOT_A_PDF
    assert store.puts == []
    assert store.signs == []


def test_put_failure_skips_grant_issuance(make_store, clock, storage_error):
    store = make_store(put_error=storage_error)
    rejected = rejection(build_gateway(store, clock), pdf_candidate())

    assert rejected.reason is RejectionReason.STORAGE_WRITE_FAILED
    assert rejected.message == "Upload failed"
    assert "503" not in rejected.message
    assert store.signs == []


def test_key_collision_is_a_storage_write_failure(store, clock):
    gateway = build_gateway(store, clock)
    gateway.handle(pdf_candidate(), "1.2.3.4")

    rejected = rejection(gateway, pdf_candidate(), key="5.6.7.8")
    assert rejected.reason is RejectionReason.STORAGE_WRITE_FAILED
    assert len(store.objects) == 1
    assert len(store.signs) == 2


def test_grant_failure_leaves_orphaned_object(make_store, clock, storage_error):
    store = make_store(sign_error=storage_error)
    rejected = rejection(build_gateway(store, clock), pdf_candidate())

    assert rejected.reason is RejectionReason.GRANT_ISSUANCE_FAILED
    assert rejected.status_code == 500
    assert len(store.objects) == 1
    assert store.deletes == []


def test_grant_failure_with_compensation_removes_object(make_store, clock, storage_error):
    store = make_store(sign_error=storage_error)
    gateway = build_gateway(store, clock, compensate_orphans=True)

    assert rejection(gateway, pdf_candidate()).reason is RejectionReason.GRANT_ISSUANCE_FAILED
    assert store.objects == {}
    assert len(store.deletes) == 1


def test_failed_compensation_still_reports_grant_failure(make_store, clock, storage_error):
    store = make_store(sign_error=storage_error, delete_error=storage_error)
    gateway = build_gateway(store, clock, compensate_orphans=True)

    assert rejection(gateway, pdf_candidate()).reason is RejectionReason.GRANT_ISSUANCE_FAILED
    assert len(store.objects) == 1
