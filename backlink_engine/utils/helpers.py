"""
URL and domain helpers shared by discovery and monitoring.
"""

import re
import zlib
from typing import Optional
from urllib.parse import urlparse

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def extract_domain(url: Optional[str]) -> str:
    """Extract a bare, lower-case domain from a URL or host string.

    Accepts full URLs as well as bare hosts (``www.example.com/path``);
    strips the scheme, a leading ``www.``, any port and credentials.
    """
    if not url:
        return ""
    value = url.strip().lower()
    if not _SCHEME_RE.match(value):
        value = f"http://{value}"
    host = urlparse(value).netloc
    host = host.rsplit("@", 1)[-1].split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host.strip(".")


def default_target_url(domain: str) -> str:
    """URL used when a snapshot row does not name its target page."""
    return f"https://{domain}"


def stable_hash(value: str) -> int:
    """Process-independent hash used for deterministic heuristics."""
    return zlib.crc32(value.encode("utf-8"))


def tld_of(domain: str) -> str:
    """Return the last label of a domain with its leading dot (``.com``)."""
    if "." not in domain:
        return ""
    return "." + domain.rsplit(".", 1)[-1]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
