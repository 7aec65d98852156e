import xml.etree.ElementTree as ET
from datetime import date, datetime

from sitemap import SITEMAP_NS, build_sitemap, lastmod_for

NS = {"sm": SITEMAP_NS}


def locs(xml):
    root = ET.fromstring(xml.split("\n", 1)[1])
    return [el.text for el in root.findall("sm:url/sm:loc", NS)]


def test_empty_store_has_only_static_pages(client):
    resp = client.get("/sitemap.xml")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/xml")
    assert resp.text.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert locs(resp.text) == [
        "https://gamezone.test/",
        "https://gamezone.test/games",
        "https://gamezone.test/categories",
        "https://gamezone.test/subscribe",
    ]


def test_categories_and_games_are_listed(client, add_game):
    game_id = add_game(title="Zed", category="Role Playing")
    urls = locs(client.get("/sitemap.xml").text)
    assert len(urls) == 6
    assert "https://gamezone.test/category/Role%20Playing" in urls
    assert urls[-1] == f"https://gamezone.test/game/{game_id}"


def test_lastmod_uses_created_date_or_today():
    today = date(2024, 5, 1)
    xml = build_sitemap(
        "https://site.test/",
        [
            {"_id": "a1", "createdAt": datetime(2023, 12, 24, 18, 30)},
            {"_id": "b2"},
        ],
        [],
        today=today,
    )
    root = ET.fromstring(xml.split("\n", 1)[1])
    lastmods = [el.text for el in root.findall("sm:url/sm:lastmod", NS)]
    assert lastmods[-2:] == ["2023-12-24", "2024-05-01"]
    assert locs(xml)[-2:] == ["https://site.test/game/a1", "https://site.test/game/b2"]


def test_lastmod_accepts_iso_strings():
    today = date(2024, 5, 1)
    assert lastmod_for("2022-02-03T10:00:00Z", today) == "2022-02-03"
    assert lastmod_for("garbage-value", today) == "2024-05-01"
    assert lastmod_for(None, today) == "2024-05-01"
