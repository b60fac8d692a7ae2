import base64
import binascii
import hashlib
import hmac
import time

SIGNATURE_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


class WebhookVerificationError(Exception):
    pass


def _secret_bytes(secret):
    if secret.startswith("whsec_"):
        secret = secret[len("whsec_"):]
    try:
        return base64.b64decode(secret)
    except (binascii.Error, ValueError) as exc:
        raise WebhookVerificationError("Webhook secret is not valid base64") from exc


def sign_payload(secret, message_id, timestamp, payload):
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    signed_content = f"{message_id}.{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(_secret_bytes(secret), signed_content, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook(secret, headers, payload, tolerance_seconds=300, now=None):
    """Check an HMAC-SHA256 signed webhook delivery.

    ``headers`` maps the three signature header names to their values. The signature header may
    carry several space separated ``v1,<base64>`` entries; any one of them matching is enough.
    """
    message_id = headers["svix-id"]
    timestamp = headers["svix-timestamp"]
    signature_header = headers["svix-signature"]

    try:
        sent_at = int(timestamp)
    except (TypeError, ValueError) as exc:
        raise WebhookVerificationError("Invalid signature timestamp") from exc

    now = int(time.time()) if now is None else int(now)
    if abs(now - sent_at) > tolerance_seconds:
        raise WebhookVerificationError("Signature timestamp outside the tolerance window")

    expected = sign_payload(secret, message_id, timestamp, payload)
    for candidate in signature_header.split():
        version, _, signature = candidate.partition(",")
        if version != "v1":
            continue
        if hmac.compare_digest(expected, signature):
            return True
    raise WebhookVerificationError("No matching signature found")
