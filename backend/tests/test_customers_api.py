from conftest import invoice_payload


def test_carry_forward_for_new_customer(client):
    resp = client.get("/api/customers/9000000000/carry-forward")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["latest_invoice"] is None
    assert body["previous_outstanding_cents"] == 0
    assert body["previous_pending_amounts"] == []


def test_carry_forward_then_attach(client):
    client.post("/api/invoices", json=invoice_payload(amount_paid_cents=5000))

    carry = client.get("/api/customers/9876543210/carry-forward").get_json()
    assert carry["previous_outstanding_cents"] == 200000
    assert len(carry["previous_pending_amounts"]) == 1

    resp = client.post("/api/invoices", json=invoice_payload(
        invoice_date="2024-06-05",
        previous_outstanding_cents=carry["previous_outstanding_cents"],
        previous_pending_amounts=carry["previous_pending_amounts"],
        items=[{"name": "Tiles", "quantity": 1, "rate_cents": 10000}],
    ))

    invoice = resp.get_json()["invoice"]
    assert invoice["balance_due_cents"] == 210000
    assert invoice["previous_pending_amounts"][0]["amount_cents"] == 200000


def test_ledger(client):
    client.post("/api/invoices", json=invoice_payload(amount_paid_cents=5000))

    resp = client.get("/api/customers/9876543210/ledger")

    assert resp.status_code == 200
    body = resp.get_json()
    assert [e["kind"] for e in body["entries"]] == ["invoice", "payment"]
    assert body["final_balance_cents"] == 200000
    assert body["final_balance_cents"] == body["total_debits_cents"] - body["total_credits_cents"]


def test_blank_phone(client):
    resp = client.get("/api/customers/%20/ledger")
    assert resp.status_code == 400
