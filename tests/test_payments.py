import hashlib
import hmac

import pytest

from models import PaymentOrder
from payments import expected_signature, verify_signature


def sign(order_id, payment_id, secret="S"):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class TestSignature:

    def test_known_vector(self):
        assert expected_signature("order_1", "pay_1", "S") == sign("order_1", "pay_1")
        assert verify_signature("order_1", "pay_1", sign("order_1", "pay_1"), "S")

    def test_every_single_character_mutation_rejected(self):
        good = sign("order_1", "pay_1")
        for i, ch in enumerate(good):
            for replacement in ("0", "f", "F", "g", "é"):
                if replacement == ch:
                    continue
                mutated = good[:i] + replacement + good[i + 1:]
                assert not verify_signature("order_1", "pay_1", mutated, "S")

    @pytest.mark.parametrize("signature", ["é" * 64, "", "😀", sign("order_1", "pay_1").upper()])
    def test_malformed_signature_rejected(self, signature):
        assert not verify_signature("order_1", "pay_1", signature, "S")

    @pytest.mark.parametrize("order_id,payment_id,secret", [
        ("order_2", "pay_1", "S"),
        ("order_1", "pay_2", "S"),
        ("order_1", "pay_1", "T"),
    ])
    def test_other_inputs_rejected(self, order_id, payment_id, secret):
        assert not verify_signature(order_id, payment_id, sign("order_1", "pay_1"), secret)


def test_create_order(client, gateway, db_session):
    response = client.post("/api/payment/order", json={"amount": 50000, "currency": "inr", "receipt": "rcpt_1"})

    assert response.status_code == 200
    order = response.json()
    assert order["id"] == "order_1"
    assert order["amount"] == 50000
    assert gateway.order.created == [{"amount": 50000, "currency": "INR", "receipt": "rcpt_1"}]

    stored = db_session.query(PaymentOrder).filter_by(order_id="order_1").one()
    assert stored.status == "created"
    assert stored.receipt == "rcpt_1"


def test_create_order_invalid_amount(client):
    response = client.post("/api/payment/order", json={"amount": 0, "currency": "INR", "receipt": "r"})
    assert response.status_code == 400


def test_create_order_gateway_failure(client, gateway):
    gateway.order.fail = True
    response = client.post("/api/payment/order", json={"amount": 100, "currency": "INR"})

    assert response.status_code == 502
    assert response.json() == {"message": "Failed to create payment order"}


def test_verify_payment(client, db_session):
    client.post("/api/payment/order", json={"amount": 100, "currency": "INR", "receipt": "r"})

    response = client.post(
        "/api/payment/verify",
        json={"orderId": "order_1", "paymentId": "pay_1", "signature": sign("order_1", "pay_1")},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Payment verified"
    stored = db_session.query(PaymentOrder).filter_by(order_id="order_1").one()
    assert stored.status == "paid"
    assert stored.payment_id == "pay_1"


def test_verify_payment_bad_signature(client, db_session):
    client.post("/api/payment/order", json={"amount": 100, "currency": "INR"})
    good = sign("order_1", "pay_1")
    bad = ("f" if good[0] != "f" else "e") + good[1:]

    response = client.post(
        "/api/payment/verify",
        json={"orderId": "order_1", "paymentId": "pay_1", "signature": bad},
    )

    assert response.status_code == 400
    stored = db_session.query(PaymentOrder).filter_by(order_id="order_1").one()
    assert stored.status == "failed"


def test_verify_without_stored_order(client):
    response = client.post(
        "/api/payment/verify",
        json={"orderId": "order_x", "paymentId": "pay_x", "signature": sign("order_x", "pay_x")},
    )
    assert response.status_code == 200


@pytest.mark.parametrize("position", [0, 5, 63])
def test_verify_payment_non_ascii_signature(client, db_session, position):
    client.post("/api/payment/order", json={"amount": 100, "currency": "INR"})
    good = sign("order_1", "pay_1")
    bad = good[:position] + "é" + good[position + 1:]

    response = client.post(
        "/api/payment/verify",
        json={"orderId": "order_1", "paymentId": "pay_1", "signature": bad},
    )

    assert response.status_code == 400
    stored = db_session.query(PaymentOrder).filter_by(order_id="order_1").one()
    assert stored.status == "failed"


def test_verify_payment_all_non_ascii_signature(client, db_session):
    client.post("/api/payment/order", json={"amount": 100, "currency": "INR"})

    response = client.post(
        "/api/payment/verify",
        json={"orderId": "order_1", "paymentId": "pay_1", "signature": "é" * 64},
    )

    assert response.status_code == 400
    stored = db_session.query(PaymentOrder).filter_by(order_id="order_1").one()
    assert stored.status == "failed"
