"""Social media URL normalization.

Accepts either a bare handle (``@jane.doe``) or a URL on the platform's own
host and produces the canonical form:

    facebook   https://facebook.com/<handle>
    instagram  https://instagram.com/<handle>
    tiktok     https://tiktok.com/@<handle>
    linkedin   https://linkedin.com/in/<slug>   (or /company/<slug>)
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from contactflow.models.contact import ContactPayload, SocialPlatform

PLATFORM_HOSTS: dict[SocialPlatform, frozenset[str]] = {
    SocialPlatform.FACEBOOK: frozenset({"facebook.com", "fb.com"}),
    SocialPlatform.INSTAGRAM: frozenset({"instagram.com", "instagr.am"}),
    SocialPlatform.TIKTOK: frozenset({"tiktok.com"}),
    SocialPlatform.LINKEDIN: frozenset({"linkedin.com"}),
}

_HOST_PREFIXES = ("www.", "m.", "mobile.", "web.")
_HANDLE_RE = re.compile(r"^[a-z0-9._-]{1,100}$")
_RESERVED_PATHS = frozenset({"login", "home", "share", "sharer.php", "explore", "feed"})

# Handles that parse fine but look like placeholders.
_SUSPICIOUS_RE = re.compile(r"^(test|fake|sample|example|asdf|qwerty|user)\d*$|^\d{9,}$")


def _bare_host(host: str) -> str:
    host = host.lower().split(":", 1)[0]
    for prefix in _HOST_PREFIXES:
        if host.startswith(prefix):
            return host[len(prefix):]
    return host


def detect_platform(url: str | None) -> SocialPlatform | None:
    """Return the platform whose host serves ``url``, if any."""
    if not url or "." not in url:
        return None
    parts = urlsplit(url if "://" in url else f"https://{url}")
    host = _bare_host(parts.netloc)
    for platform, hosts in PLATFORM_HOSTS.items():
        if host in hosts:
            return platform
    return None


def _canonical(platform: SocialPlatform, handle: str, kind: str = "in") -> str:
    if not _HANDLE_RE.match(handle):
        raise ValueError(f"invalid {platform.value} handle {handle!r}")
    if platform == SocialPlatform.TIKTOK:
        return f"https://tiktok.com/@{handle}"
    if platform == SocialPlatform.LINKEDIN:
        return f"https://linkedin.com/{kind}/{handle}"
    return f"https://{platform.value}.com/{handle}"


def _handle_of(platform: SocialPlatform, raw: str) -> tuple[str, str]:
    """Extract ``(handle, linkedin_kind)`` from a handle or platform URL."""
    if "://" not in raw and "/" not in raw and detect_platform(raw) is None:
        return raw.lower().lstrip("@"), "in"

    parts = urlsplit(raw if "://" in raw else f"https://{raw}")
    if parts.scheme not in ("http", "https"):
        raise ValueError(f"unsupported URL scheme {parts.scheme!r}")
    host = _bare_host(parts.netloc)
    if host not in PLATFORM_HOSTS[platform]:
        raise ValueError(f"{raw!r} is not a {platform.value} URL")

    segments = [s for s in parts.path.split("/") if s]
    if not segments:
        raise ValueError(f"{raw!r} has no profile path")

    if platform == SocialPlatform.LINKEDIN:
        if len(segments) < 2 or segments[0].lower() not in ("in", "company"):
            raise ValueError(f"{raw!r} is not a LinkedIn profile or company page")
        return segments[1].lower(), segments[0].lower()

    handle = segments[0].lower()
    if handle in _RESERVED_PATHS:
        raise ValueError(f"{raw!r} does not point at a profile")
    if platform == SocialPlatform.TIKTOK and not handle.startswith("@"):
        raise ValueError(f"{raw!r} is not a TikTok profile")
    return handle.lstrip("@"), "in"


def normalize_social_url(platform: SocialPlatform, raw: str) -> str:
    """Return the canonical profile URL.

    Raises:
        ValueError: when ``raw`` is empty, lives on another host, or does
            not point at a profile.
    """
    raw = (raw or "").strip()
    if not raw:
        raise ValueError(f"empty {platform.value} profile")
    handle, kind = _handle_of(platform, raw)
    return _canonical(platform, handle, kind)


def extract_social_profiles(contact: ContactPayload) -> dict[SocialPlatform, str]:
    """Collect raw social profiles, including a business website that is one."""
    profiles: dict[SocialPlatform, str] = {}
    for platform in SocialPlatform:
        value = contact.social_url(platform)
        if value:
            profiles[platform] = value

    website_platform = detect_platform(contact.business_website)
    if website_platform is not None and website_platform not in profiles:
        profiles[website_platform] = contact.business_website  # type: ignore[assignment]
    return profiles


def profile_quality(platform: SocialPlatform, raw: str) -> str:
    """Classify a raw profile as ``valid``, ``invalid`` or ``suspicious``."""
    try:
        handle, _ = _handle_of(platform, raw.strip())
        _canonical(platform, handle)
    except ValueError:
        return "invalid"
    if len(handle) < 3 or _SUSPICIOUS_RE.match(handle):
        return "suspicious"
    return "valid"
