from conftest import invoice_payload


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "healthy"


def test_unknown_route_is_json(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Not found"}


def test_method_not_allowed_is_json(client):
    resp = client.patch("/api/invoices")
    assert resp.status_code == 405
    assert resp.get_json() == {"error": "Method not allowed"}


def test_cors_allowed_origin(client):
    resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"


def test_cors_unknown_origin(client):
    resp = client.get("/health", headers={"Origin": "http://evil.example"})
    assert "Access-Control-Allow-Origin" not in resp.headers


def test_refresh_status_command(app, client):
    client.post("/api/invoices", json=invoice_payload())

    result = app.test_cli_runner().invoke(args=["invoices", "refresh-status"])

    assert result.exit_code == 0
    assert "PASS Updated status on 0 invoice(s)" in result.output


def test_ledger_command(app, client):
    client.post("/api/invoices", json=invoice_payload(amount_paid_cents=5000))

    result = app.test_cli_runner().invoke(args=["customers", "ledger", "9876543210"])

    assert result.exit_code == 0
    assert "₹2,000.00" in result.output


def test_ledger_command_blank_phone(app, db_session):
    result = app.test_cli_runner().invoke(args=["customers", "ledger", " "])
    assert result.exit_code != 0
