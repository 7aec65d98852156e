import xml.etree.ElementTree as ET
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

# (path, changefreq, priority)
STATIC_PAGES = [
    ("/", "daily", "1.0"),
    ("/games", "daily", "0.9"),
    ("/categories", "weekly", "0.8"),
    ("/subscribe", "monthly", "0.5"),
]


def lastmod_for(created_at: Any, today: date) -> str:
    if isinstance(created_at, datetime):
        return created_at.date().isoformat()
    if isinstance(created_at, date):
        return created_at.isoformat()
    if isinstance(created_at, str) and len(created_at) >= 10:
        # ISO strings written by other clients
        try:
            return date.fromisoformat(created_at[:10]).isoformat()
        except ValueError:
            pass
    return today.isoformat()


def _add_url(urlset, loc: str, lastmod: str, changefreq: str, priority: str) -> None:
    url = ET.SubElement(urlset, "url")
    ET.SubElement(url, "loc").text = loc
    ET.SubElement(url, "lastmod").text = lastmod
    ET.SubElement(url, "changefreq").text = changefreq
    ET.SubElement(url, "priority").text = priority


def build_sitemap(
    base_url: str,
    games: Iterable[Dict[str, Any]],
    categories: Iterable[str],
    today: Optional[date] = None,
) -> str:
    """Render the sitemap: static pages, then one entry per category, then per game."""
    today = today or date.today()
    base = base_url.rstrip("/")
    urlset = ET.Element("urlset", xmlns=SITEMAP_NS)

    for path, changefreq, priority in STATIC_PAGES:
        _add_url(urlset, base + path, today.isoformat(), changefreq, priority)

    for category in categories:
        if not category:
            continue
        _add_url(urlset, f"{base}/category/{quote(str(category), safe='')}", today.isoformat(), "weekly", "0.7")

    for game in games:
        _add_url(
            urlset,
            f"{base}/game/{game['_id']}",
            lastmod_for(game.get("createdAt"), today),
            "monthly",
            "0.6",
        )

    return XML_DECLARATION + ET.tostring(urlset, encoding="unicode")
