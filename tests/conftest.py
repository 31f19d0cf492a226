import pytest

from app.errors import ObjectExistsError, StorageError

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingStore:
    """In-memory object store that records every call."""

    def __init__(self, *, put_error=None, sign_error=None, delete_error=None):
        self.objects: dict[str, bytes] = {}
        self.puts: list[dict] = []
        self.signs: list[tuple[str, int, bool]] = []
        self.deletes: list[str] = []
        self.put_error = put_error
        self.sign_error = sign_error
        self.delete_error = delete_error

    def put(self, key, data, *, content_type, cache_control, overwrite=False):
        self.puts.append(
            {"key": key, "content_type": content_type, "cache_control": cache_control, "overwrite": overwrite}
        )
        if self.put_error:
            raise self.put_error
        if key in self.objects and not overwrite:
            raise ObjectExistsError(key)
        self.objects[key] = data

    def sign_url(self, key, ttl_seconds, *, force_download=False):
        self.signs.append((key, ttl_seconds, force_download))
        if self.sign_error:
            raise self.sign_error
        suffix = "&download=" if force_download else ""
        return f"https://objects.test/{key}?token=t{suffix}"

    def delete(self, key):
        self.deletes.append(key)
        if self.delete_error:
            raise self.delete_error
        self.objects.pop(key, None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def storage_error():
    return StorageError("bucket unavailable: 503 upstream detail")


@pytest.fixture
def make_store():
    return RecordingStore
