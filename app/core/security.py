import hashlib
import hmac


def sign_callback(payload: bytes, private_key: str) -> str:
    """HMAC-SHA256 hex digest of the raw callback body, as Tripay computes it."""
    return hmac.new(
        private_key.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()


def verify_callback_signature(payload: bytes, signature: str, private_key: str) -> bool:
    expected = sign_callback(payload, private_key)
    provided = signature.strip().lower().encode("utf-8", "surrogateescape")
    return hmac.compare_digest(expected.encode("ascii"), provided)


def secret_matches(provided: str | None, expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
