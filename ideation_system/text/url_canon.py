"""
URL canonicalization for consistent deduplication
"""

from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode
import logging

logger = logging.getLogger(__name__)

TRACKING_PARAMS = {
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "gclid", "fbclid", "ref", "referer", "referrer",
    "sessionid", "sid",
}


def canonical_url(u: str) -> str:
    """
    Canonicalize a URL by removing tracking parameters and fragments.
    Scheme and host are lowercased; query parameters are sorted.
    """
    if not u:
        return ""

    u = u.strip()
    try:
        p = urlparse(u)
    except ValueError as e:
        logger.debug(f"Unparseable URL {u!r}: {e}")
        return u

    if p.query:
        q = [(k, v) for (k, v) in parse_qsl(p.query, keep_blank_values=True)
             if k.lower() not in TRACKING_PARAMS]
        q.sort()
        new_query = urlencode(q)
    else:
        new_query = ""

    canonical = p._replace(
        scheme=p.scheme.lower(),
        netloc=p.netloc.lower(),
        query=new_query,
        fragment="",
    )
    result = urlunparse(canonical)

    if result.endswith("/"):
        result = result.rstrip("/")

    return result
