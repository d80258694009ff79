import hashlib
import hmac
import json
import time
from unittest import mock

import requests

from core.payments.models import Order


def fake_response(status_code=200, payload=None):
    response = mock.Mock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = payload if payload is not None else {}
    response.text = json.dumps(payload) if payload is not None else ""
    return response


def razorpay_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def stripe_signature_header(body: bytes, secret: str, timestamp=None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{body.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def razorpay_event(event="payment.captured", order_id="order_1", payment_id="pay_1", amount=649900):
    return {
        "entity": "event",
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": order_id,
                    "amount": amount,
                    "currency": "INR",
                    "status": "captured" if event != "payment.failed" else "failed",
                }
            }
        },
    }


def stripe_event(event_type="checkout.session.completed", session_id="cs_test_1", event_id="evt_1", **session):
    data = {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": "paid",
        "payment_intent": "pi_1",
        "amount_total": 19900,
        "currency": "usd",
    }
    data.update(session)
    return {"id": event_id, "type": event_type, "data": {"object": data}}


def paypal_capture_event(event_type="PAYMENT.CAPTURE.COMPLETED", order_id="PAYPAL-ORDER-1", event_id="WH-1"):
    return {
        "id": event_id,
        "event_type": event_type,
        "resource": {
            "id": "CAPTURE-1",
            "status": "COMPLETED",
            "amount": {"currency_code": "USD", "value": "199.00"},
            "supplementary_data": {"related_ids": {"order_id": order_id}},
        },
    }


def pending_order(user=None, gateway=Order.Gateway.RAZORPAY, order_id="order_1", amount=649900, currency="INR", **extra):
    return Order.objects.create(
        gateway=gateway,
        order_id=order_id,
        user=user,
        user_email=extra.pop("user_email", user.email if user else "guest@example.com"),
        amount=amount,
        currency=currency,
        **extra,
    )
