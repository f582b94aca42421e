def test_no_company(client):
    resp = client.get("/api/company")
    assert resp.status_code == 200
    assert resp.get_json() == {"company": None}


def test_upsert_keeps_single_row(client):
    client.post("/api/company", json={"name": "Asha Hardware"})
    resp = client.post("/api/company", json={"logo_url": "https://example.com/logo.png"})

    company = resp.get_json()["company"]
    assert company["name"] == "Asha Hardware"
    assert company["logo_url"] == "https://example.com/logo.png"


def test_delete(client):
    client.post("/api/company", json={"name": "Asha Hardware"})
    assert client.delete("/api/company").status_code == 200
    assert client.get("/api/company").get_json() == {"company": None}


def test_rejects_unknown_field(client):
    assert client.post("/api/company", json={"gst": "X"}).status_code == 400
