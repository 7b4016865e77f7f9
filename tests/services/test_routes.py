"""HTTP surface — status codes, error envelopes, and an end-to-end billing flow."""

from uuid import uuid4


async def test_health(client):
    response = await client.get("/api/v1/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    ready = await client.get("/api/v1/health/ready")
    assert ready.status_code == 200
    assert ready.json()["checks"] == {"database": "healthy", "settings": "present"}


async def test_timer_to_paid_invoice(client, seed_project, clock):
    project_id = str(seed_project.id)
    client_id = str(seed_project.client_id)

    started = await client.post(
        "/api/v1/time-sessions/start",
        json={"project_id": project_id, "task_description": "API work"},
    )
    assert started.status_code == 201
    session_id = started.json()["id"]

    clock.advance(300)
    active = await client.get("/api/v1/time-sessions/active")
    assert active.json()["elapsed_seconds"] == 300

    conflict = await client.post(
        "/api/v1/time-sessions/start", json={"project_id": project_id},
    )
    assert conflict.status_code == 409
    assert conflict.json()["error"]["message"] == "A timer is already running. Stop it first."

    clock.advance(3000)
    stopped = await client.post(f"/api/v1/time-sessions/{session_id}/stop")
    assert stopped.status_code == 200
    assert stopped.json()["duration_seconds"] == 3600
    assert stopped.json()["billable_amount_cents"] == 10000

    created = await client.post("/api/v1/invoices/from-sessions", json={
        "session_ids": [session_id], "client_id": client_id, "tax_rate": "0",
    })
    assert created.status_code == 201
    invoice = created.json()
    assert invoice["invoice_number"] == "INV-0001"
    assert invoice["total_cents"] == 10000
    assert invoice["items"][0]["description"] == "Website - Time tracking (1.00 hours)"

    again = await client.post("/api/v1/invoices/from-sessions", json={
        "session_ids": [session_id], "client_id": client_id,
    })
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "SESSION_ALREADY_BILLED"

    partial = await client.post(
        "/api/v1/payments", json={"invoice_id": invoice["id"], "amount_cents": 6000},
    )
    assert partial.status_code == 201

    over = await client.post(
        "/api/v1/payments", json={"invoice_id": invoice["id"], "amount_cents": 5000},
    )
    assert over.status_code == 400
    error = over.json()["error"]
    assert error["code"] == "OVERPAYMENT"
    assert error["context"]["invoice_id"] == invoice["id"]
    assert error["context"]["details"]["outstanding_cents"] == 4000

    final = await client.post(
        "/api/v1/payments", json={"invoice_id": invoice["id"], "amount_cents": 4000},
    )
    assert final.status_code == 201

    fetched = await client.get(f"/api/v1/invoices/{invoice['id']}")
    assert fetched.json()["status"] == "paid"
    total = await client.get(f"/api/v1/payments/invoice/{invoice['id']}/total")
    assert total.json()["total_paid_cents"] == 10000
    payments = await client.get(f"/api/v1/invoices/{invoice['id']}/payments")
    assert len(payments.json()) == 2


async def test_manual_invoice_and_items(client, seed_client):
    created = await client.post("/api/v1/invoices", json={
        "client_id": str(seed_client.id),
        "tax_rate": "10",
        "items": [{"description": "Audit", "quantity": "2", "unit_price_cents": 5000}],
    })
    assert created.status_code == 201
    invoice_id = created.json()["id"]
    assert created.json()["total_cents"] == 11000

    added = await client.post(f"/api/v1/invoices/{invoice_id}/items", json={
        "description": "Report", "quantity": "1", "unit_price_cents": 1000,
    })
    assert added.status_code == 201
    assert added.json()["total_cents"] == 12100

    first_item = added.json()["items"][0]["id"]
    trimmed = await client.delete(f"/api/v1/invoices/{invoice_id}/items/{first_item}")
    assert trimmed.json()["subtotal_cents"] == 1000

    last_item = trimmed.json()["items"][0]["id"]
    last = await client.delete(f"/api/v1/invoices/{invoice_id}/items/{last_item}")
    assert last.status_code == 400
    assert last.json()["error"]["code"] == "LAST_ITEM"

    deleted = await client.delete(f"/api/v1/invoices/{invoice_id}")
    assert deleted.status_code == 204
    missing = await client.get(f"/api/v1/invoices/{invoice_id}")
    assert missing.status_code == 404


async def test_validation_errors_are_400(client, seed_client):
    response = await client.post(
        "/api/v1/payments", json={"invoice_id": str(uuid4()), "amount_cents": 0},
    )
    assert response.status_code == 400
    body = response.json()["error"]
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"][0]["field"] == "body.amount_cents"

    no_items = await client.post(
        "/api/v1/invoices", json={"client_id": str(seed_client.id), "items": []},
    )
    assert no_items.status_code == 400


async def test_unknown_ids_are_404(client):
    assert (await client.get(f"/api/v1/time-sessions/{uuid4()}")).status_code == 404
    assert (await client.get(f"/api/v1/payments/{uuid4()}")).status_code == 404
    assert (await client.get(f"/api/v1/invoices/client/{uuid4()}")).status_code == 404


async def test_settings_counter_is_read_only(client):
    current = await client.get("/api/v1/settings")
    assert current.status_code == 200
    assert current.json()["next_invoice_number"] == 1

    rejected = await client.patch("/api/v1/settings", json={"next_invoice_number": 99})
    assert rejected.status_code == 400

    updated = await client.patch("/api/v1/settings", json={"invoice_prefix": "FL-"})
    assert updated.json()["invoice_prefix"] == "FL-"
    assert updated.json()["next_invoice_number"] == 1
