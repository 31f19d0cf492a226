from collections.abc import Mapping

UNKNOWN_CLIENT = "unknown"


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        # plain dicts are case sensitive, Starlette Headers are not
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                return candidate
    return value


def client_key_from_headers(headers: Mapping[str, str]) -> str:
    """Derive the rate-limit key for a request.

    Uses the first address in X-Forwarded-For, then X-Real-IP. Callers with
    neither share the ``"unknown"`` key and therefore one budget.
    """
    forwarded = _header(headers, "x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = _header(headers, "x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return UNKNOWN_CLIENT
