import json

import pytest
from sqlalchemy import event

from storefront.data.database import SessionLocal, engine
from storefront.data.models import OrderModel
from storefront.domain.errors import GatewayVerificationFailed

from conftest import CUSTOMER_ID, WEBHOOK_SECRET, auth

URL = "/payments/flutterwave/webhook"


def ref(order_id):
    return f"STOREFRONT_{order_id}_1760000000000"


def charge_completed(order_id, reference=None, amount=200):
    return {
        "event": "charge.completed",
        "data": {
            "id": 9001,
            "tx_ref": reference or ref(order_id),
            "amount": amount,
            "currency": "NGN",
            "status": "successful",
            "meta": {"order_id": str(order_id)},
        },
    }


def post(client, payload, signature=WEBHOOK_SECRET):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["verif-hash"] = signature
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return client.post(URL, content=body, headers=headers)


def load(order_id):
    with SessionLocal() as s:
        return s.get(OrderModel, order_id)


@pytest.fixture
def statements():
    executed = []

    def record(conn, cursor, statement, parameters, context, executemany):
        executed.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    yield executed
    event.remove(engine, "before_cursor_execute", record)


@pytest.mark.parametrize("signature", [None, "", "wrong-secret", WEBHOOK_SECRET + "x"])
def test_bad_signature_rejected_before_any_query(client, place_order, gateway, signature, statements):
    order = place_order()
    statements.clear()

    resp = post(client, charge_completed(order["id"]), signature=signature)

    assert resp.status_code == 401
    assert statements == []
    assert gateway.verify_calls == []


def test_body_is_not_parsed_before_signature_check(client, statements):
    resp = post(client, b"{not json", signature="wrong")
    assert resp.status_code == 401
    assert statements == []


def test_charge_completed_marks_order_paid(client, place_order, gateway, notifier):
    order = place_order()
    gateway.add_transaction(ref(order["id"]), order["id"], amount=200)

    resp = post(client, charge_completed(order["id"]))

    assert resp.status_code == 200
    assert resp.json()["applied"] is True
    stored = load(order["id"])
    assert stored.is_paid is True
    assert stored.status == "processing"
    assert stored.payment_result["channel"] == "card"
    assert notifier.paid == [(order["id"], "ada@example.com")]


def test_replayed_webhook_is_acknowledged_without_side_effects(client, place_order, gateway, notifier):
    order = place_order()
    gateway.add_transaction(ref(order["id"]), order["id"], amount=200)

    post(client, charge_completed(order["id"]))
    paid_at = load(order["id"]).paid_at
    resp = post(client, charge_completed(order["id"]))

    assert resp.status_code == 200
    assert resp.json()["applied"] is False
    assert load(order["id"]).paid_at == paid_at
    assert len(notifier.paid) == 1


def test_verify_then_webhook_sends_one_email(client, place_order, gateway, notifier):
    order = place_order()
    tx = ref(order["id"])
    gateway.add_transaction(tx, order["id"], amount=200)

    client.get(f"/payments/flutterwave/verify/{tx}", headers=auth(CUSTOMER_ID))
    resp = post(client, charge_completed(order["id"]))

    assert resp.status_code == 200
    assert len(notifier.paid) == 1


def test_webhook_amount_is_rechecked_with_gateway(client, place_order, gateway):
    order = place_order()
    # webhook deklaruje 200, bramka mowi 150
    gateway.add_transaction(ref(order["id"]), order["id"], amount=150)

    resp = post(client, charge_completed(order["id"], amount=200))

    assert resp.status_code == 400
    stored = load(order["id"])
    assert stored.is_paid is False
    assert stored.status == "pending"


def test_missing_order_id_is_400(client):
    payload = charge_completed(1)
    payload["data"]["meta"] = {}

    assert post(client, payload).status_code == 400


def test_unknown_order_is_404(client, gateway):
    gateway.add_transaction(ref(777), 777, amount=200)
    assert post(client, charge_completed(777)).status_code == 404


def test_gateway_outage_is_502(client, place_order, gateway):
    order = place_order()
    gateway.transactions[ref(order["id"])] = GatewayVerificationFailed()

    assert post(client, charge_completed(order["id"])).status_code == 502
    assert load(order["id"]).is_paid is False


@pytest.mark.parametrize("event_type", ["charge.failed", "transaction.dispute", "subscription.cancelled"])
def test_other_events_are_acknowledged(client, place_order, gateway, event_type):
    order = place_order()
    payload = charge_completed(order["id"])
    payload["event"] = event_type

    resp = post(client, payload)

    assert resp.status_code == 200
    assert resp.json()["handled"] is False
    assert gateway.verify_calls == []
    assert load(order["id"]).is_paid is False


def test_malformed_json_with_valid_signature_is_400(client):
    assert post(client, b"{not json").status_code == 400


@pytest.mark.parametrize("data", [["x"], "x", 42, None])
def test_ignored_event_with_odd_data_is_acknowledged(client, data):
    resp = post(client, {"event": "charge.failed", "data": data})

    assert resp.status_code == 200
    assert resp.json()["handled"] is False


@pytest.mark.parametrize("data", [["x"], "x", {"tx_ref": "STOREFRONT_1_1", "meta": ["1"]}, {"tx_ref": "STOREFRONT_1_1", "meta": "1"}])
def test_malformed_charge_completed_is_400(client, gateway, data):
    resp = post(client, {"event": "charge.completed", "data": data})

    assert resp.status_code == 400
    assert gateway.verify_calls == []


@pytest.mark.parametrize("order_id", ["9" * 30, "4294967296", "-1", "1.5", "\u00b2", True])
def test_out_of_range_order_id_in_webhook_is_400(client, gateway, order_id):
    payload = charge_completed(1)
    payload["data"]["meta"]["order_id"] = order_id

    assert post(client, payload).status_code == 400
    assert gateway.verify_calls == []
