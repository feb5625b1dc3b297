# src/cache/fingerprint.py — v1
"""Content fingerprinting for generated artifacts.

A fingerprint is a truncated SHA-256 over subject, artifact type and prompt
text. It is a pure function of its inputs, so the same request maps to the
same cache key across calls and process restarts.
"""

from __future__ import annotations

import hashlib

DEFAULT_KEY_LENGTH = 16


def compute_fingerprint(
    subject_id: str,
    artifact_type: str,
    prompt_text: str,
    length: int = DEFAULT_KEY_LENGTH,
) -> str:
    """Compute the cache key for a generation request.

    Args:
        subject_id: Identifier of the subject the artifact depicts (e.g. a character).
        artifact_type: Kind of artifact (testimony, introduction, ...).
        prompt_text: Full prompt sent to the provider.
        length: Number of hex characters kept from the digest.

    Returns:
        Lowercase hex fingerprint of ``length`` characters.

    Raises:
        ValueError: If any component is empty or length is out of range.
    """
    if not subject_id or not artifact_type or not prompt_text:
        raise ValueError("subject_id, artifact_type and prompt_text must be non-empty")
    if not 1 <= length <= 64:
        raise ValueError(f"length must be between 1 and 64, got {length}")

    content = f"{subject_id}:{artifact_type}:{prompt_text}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:length]


def is_fingerprint(value: str, length: int = DEFAULT_KEY_LENGTH) -> bool:
    """Check that a string has the shape of a fingerprint."""
    if len(value) != length:
        return False
    try:
        int(value, 16)
    except ValueError:
        return False
    return value == value.lower()
