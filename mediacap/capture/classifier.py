"""Media kind classification from content-type and URL extension."""

import re
from typing import Optional

from ..models.media import MediaKind

VIDEO_EXTENSIONS = ("mp4", "webm", "m3u8", "mkv")
AUDIO_EXTENSIONS = ("mp3", "aac", "ogg", "opus", "wav", "flac", "m4a")
IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "bmp", "webp")

MANIFEST_CONTENT_TYPES = (
    "application/vnd.apple.mpegurl",
    "application/x-mpegurl",
    "audio/mpegurl",
    "audio/x-mpegurl",
)


def _extension_pattern(extensions) -> re.Pattern:
    return re.compile(r'\.(?:' + '|'.join(extensions) + r')(?:[?#&;/]|$)', re.IGNORECASE)


_VIDEO_RE = _extension_pattern(VIDEO_EXTENSIONS)
_AUDIO_RE = _extension_pattern(AUDIO_EXTENSIONS)
_IMAGE_RE = _extension_pattern(IMAGE_EXTENSIONS)


def is_manifest(content_type: Optional[str], url: str = "") -> bool:
    """Check for an HLS manifest by content-type or URL."""
    ct = (content_type or "").lower()
    if any(ct.startswith(m) for m in MANIFEST_CONTENT_TYPES) or "mpegurl" in ct:
        return True
    return "m3u8" in (url or "").lower()


def is_media_content_type(content_type: Optional[str]) -> bool:
    """Check whether a content-type denotes video, audio, image or a manifest."""
    ct = (content_type or "").strip().lower()
    if not ct:
        return False
    return ct.startswith(("video", "audio", "image")) or is_manifest(ct)


def classify(content_type: Optional[str], url: str) -> MediaKind:
    """Infer the media kind of a resource.

    Content-type wins over the URL; manifests count as video. Pure and
    deterministic.

    Args:
        content_type: Observed content-type, if any
        url: Canonical URL of the resource

    Returns:
        The inferred MediaKind
    """
    ct = (content_type or "").strip().lower()
    url = url if isinstance(url, str) else ""

    # Some servers label HLS manifests audio/mpegurl
    if is_manifest(ct):
        return MediaKind.VIDEO
    if ct.startswith("video"):
        return MediaKind.VIDEO
    if ct.startswith("audio"):
        return MediaKind.AUDIO
    if ct.startswith("image"):
        return MediaKind.IMAGE

    if url.lower().startswith("data:"):
        # data:image/png;base64,... carries its own content-type
        mime = url[5:].split(";", 1)[0].split(",", 1)[0].lower()
        if mime.startswith(("video", "audio", "image")):
            return MediaKind(mime.split("/", 1)[0])
        return MediaKind.OTHER

    if is_manifest(None, url) or _VIDEO_RE.search(url):
        return MediaKind.VIDEO
    if _AUDIO_RE.search(url):
        return MediaKind.AUDIO
    if _IMAGE_RE.search(url):
        return MediaKind.IMAGE
    return MediaKind.OTHER
