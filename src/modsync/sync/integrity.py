"""Content digest verification for downloaded archives."""

import hashlib
import hmac
from enum import Enum


class Verification(Enum):
    """Outcome of comparing content against a published digest."""

    VERIFIED = "verified"
    MISMATCH = "mismatch"
    UNVERIFIABLE = "unverifiable"


class IntegrityVerifier:
    """Computes a content digest and compares it with the registry's."""

    def __init__(self, algorithm: str = "sha1"):
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported digest algorithm: {algorithm}")
        self.algorithm = algorithm

    def digest(self, content: bytes) -> str:
        """Return the lowercase hex digest of content."""
        return hashlib.new(self.algorithm, content).hexdigest()

    def verify(self, content: bytes, expected: str | None) -> Verification:
        """
        Check content against an expected hex digest.

        A missing digest yields UNVERIFIABLE rather than a failure.
        """
        if not expected:
            return Verification.UNVERIFIABLE
        actual = self.digest(content)
        if hmac.compare_digest(actual.encode(), expected.strip().lower().encode("utf-8")):
            return Verification.VERIFIED
        return Verification.MISMATCH
