"""X-Hub-Signature verification for Messenger webhook deliveries."""

from __future__ import annotations

import hashlib
import hmac
import re

SUPPORTED_ALGORITHMS = {"sha256": hashlib.sha256, "sha1": hashlib.sha1}

_HEADER_PATTERN = re.compile(r"^([a-zA-Z0-9]+)=([a-fA-F0-9]+)$")


def parse_signature_header(header: str | None) -> tuple[str, str] | None:
    """Split ``"sha256=<hex>"`` into ``(algorithm, hex)``; None when malformed."""
    if not header:
        return None
    match = _HEADER_PATTERN.match(header.strip())
    if not match:
        return None
    algorithm = match.group(1).lower()
    if algorithm not in SUPPORTED_ALGORITHMS:
        return None
    return algorithm, match.group(2).lower()


def create_signature_header(secret: str, body: bytes | str, algorithm: str = "sha256") -> str:
    if isinstance(body, str):
        body = body.encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), body, SUPPORTED_ALGORITHMS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(secret: str, body: bytes | str, signature_header: str | None) -> bool:
    """Check a webhook body against its signature header in constant time."""
    parts = parse_signature_header(signature_header)
    if parts is None or not secret:
        return False
    algorithm, provided = parts
    if isinstance(body, str):
        body = body.encode("utf-8")
    expected = hmac.new(secret.encode("utf-8"), body, SUPPORTED_ALGORITHMS[algorithm]).hexdigest()
    return hmac.compare_digest(expected, provided)
