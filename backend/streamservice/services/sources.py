from urllib.parse import urlparse

# hostname suffix -> platform label stored on the video
KNOWN_SOURCES = {
    "youtube.com": "youtube",
    "youtu.be": "youtube",
    "rutube.ru": "rutube",
    "vk.com": "vk",
    "vkvideo.ru": "vk",
    "kinopoisk.ru": "kinopoisk",
}


def detect_source(url: str) -> str:
    """label the hosting platform of a submitted url, 'unknown' if unrecognised"""
    host = (urlparse(url).hostname or "").lower()
    for suffix, source in KNOWN_SOURCES.items():
        if host == suffix or host.endswith("." + suffix):
            return source
    return "unknown"


def is_http_url(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
