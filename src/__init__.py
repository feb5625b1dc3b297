"""clipforge — video clip generation with degraded fallback and a fingerprint-addressed cache."""

from clipforge.version import __version__

__all__ = ["__version__"]
