from bson import ObjectId

IMAGE_AD = {"title": "Summer sale", "type": "image", "position": "sidebar",
            "image": "https://cdn.test/banner.png", "link": "https://shop.test"}
CODE_AD = {"title": "Network ad", "type": "code", "position": "header", "content": "<script></script>"}


def test_create_and_get_ad(client):
    resp = client.post("/ads", json=IMAGE_AD)
    assert resp.status_code == 201
    ad_id = resp.json()["insertedId"]

    ad = client.get(f"/ads/{ad_id}").json()
    assert ad["title"] == "Summer sale"
    assert ad["link"] == "https://shop.test"
    assert "content" not in ad


def test_image_ad_needs_image_and_link(client, db):
    for missing in ("image", "link"):
        payload = {k: v for k, v in IMAGE_AD.items() if k != missing}
        resp = client.post("/ads", json=payload)
        assert resp.status_code == 400, missing
        assert "image and link" in resp.json()["detail"]
    assert db.ads.count() == 0


def test_code_ad_needs_content(client):
    payload = {k: v for k, v in CODE_AD.items() if k != "content"}
    assert client.post("/ads", json=payload).status_code == 400
    assert client.post("/ads", json=CODE_AD).status_code == 201


def test_common_fields_and_type_are_required(client):
    assert client.post("/ads", json={**CODE_AD, "type": "video"}).status_code == 400
    assert client.post("/ads", json={k: v for k, v in CODE_AD.items() if k != "position"}).status_code == 400
    assert client.post("/ads", json={k: v for k, v in CODE_AD.items() if k != "title"}).status_code == 400


def test_list_ads_newest_first(client):
    client.post("/ads", json=IMAGE_AD)
    client.post("/ads", json=CODE_AD)
    assert [a["title"] for a in client.get("/ads").json()] == ["Network ad", "Summer sale"]


def test_update_and_delete_ad(client):
    ad_id = client.post("/ads", json=CODE_AD).json()["insertedId"]
    assert client.put(f"/ads/{ad_id}", json={"position": "footer"}).status_code == 200
    assert client.get(f"/ads/{ad_id}").json()["position"] == "footer"
    assert client.put(f"/ads/{ad_id}", json={"type": "video"}).status_code == 400

    assert client.delete(f"/ads/{ad_id}").status_code == 200
    assert client.delete(f"/ads/{ad_id}").status_code == 404


def test_ad_ids(client):
    assert client.get("/ads/bad").status_code == 400
    assert client.put("/ads/bad", json={"title": "x"}).status_code == 400
    assert client.delete("/ads/bad").status_code == 400
    assert client.get(f"/ads/{ObjectId()}").status_code == 404


def test_update_keeps_type_dependent_fields(client):
    ad_id = client.post("/ads", json=CODE_AD).json()["insertedId"]
    resp = client.put(f"/ads/{ad_id}", json={"type": "image"})
    assert resp.status_code == 400
    assert "image and link" in resp.json()["detail"]
    assert client.put(f"/ads/{ad_id}", json={"title": "  "}).status_code == 400
    assert client.put(f"/ads/{ad_id}", json={"content": ""}).status_code == 400

    ad = client.get(f"/ads/{ad_id}").json()
    assert ad["type"] == "code"
    assert ad["title"] == "Network ad"


def test_update_can_switch_type_with_required_fields(client):
    ad_id = client.post("/ads", json=CODE_AD).json()["insertedId"]
    resp = client.put(f"/ads/{ad_id}", json={"type": "image", "image": "https://cdn.test/b.png",
                                              "link": "https://shop.test", "title": " Banner "})
    assert resp.status_code == 200
    ad = client.get(f"/ads/{ad_id}").json()
    assert ad["type"] == "image"
    assert ad["title"] == "Banner"


def test_update_missing_ad_is_404(client):
    assert client.put(f"/ads/{ObjectId()}", json={"title": "x"}).status_code == 404
