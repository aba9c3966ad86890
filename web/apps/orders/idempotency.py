"""Idempotency-Key handling for order creation.

A client retrying ``POST /api/orders/`` with the same ``Idempotency-Key``
must not get a second order (and a second payment intent). The first
request claims the key together with a hash of its validated payload; once
it finishes, its status code and body are stored on the record and replayed
for every retry that carries the same payload.
"""

import hashlib
import json

from django.db import IntegrityError, transaction

from .models import IdempotencyKey


class IdempotencyConflict(Exception):
    """The key was already used with a different payload."""


def _hash(payload: dict) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@transaction.atomic
def get_or_create_idempotent(key: str, payload: dict):
    """Claim ``key`` for ``payload`` or return the request that holds it.

    Returns:
        tuple[bool, IdempotencyKey]: ``(False, rec)`` when this call claimed
        the key, ``(True, rec)`` when an earlier request did. In the latter
        case ``rec.response_status`` stays 0 until that request finishes.

    Raises:
        IdempotencyConflict: If the key is held by a different payload.
    """
    request_hash = _hash(payload)
    try:
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(key=key, request_hash=request_hash)
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(key=key)
        if rec.request_hash != request_hash:
            raise IdempotencyConflict(key) from None
        return True, rec
    return False, rec


def finalize(rec: IdempotencyKey, status_code: int, body: dict, order_id=None):
    """Store the response of the request that claimed ``rec``."""
    rec.response_status = status_code
    rec.response_body = body
    if order_id is not None:
        rec.order_id = order_id
    rec.save(update_fields=["response_status", "response_body", "order"])
