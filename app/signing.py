import hashlib
import hmac


class URLSigner:
    def __init__(self, secret_key: str):
        self.secret_key = secret_key.encode("utf-8")

    def _message(self, *, key: str, expires_at: int, download: bool) -> bytes:
        disposition = "attachment" if download else "inline"
        return f"{key}:{expires_at}:{disposition}".encode("utf-8")

    def sign(self, *, key: str, expires_at: int, download: bool = False) -> str:
        msg = self._message(key=key, expires_at=expires_at, download=download)
        return hmac.new(self.secret_key, msg, hashlib.sha256).hexdigest()

    def verify(self, *, key: str, expires_at: int, download: bool, signature: str) -> bool:
        expected = self.sign(key=key, expires_at=expires_at, download=download)
        return hmac.compare_digest(expected, signature)
