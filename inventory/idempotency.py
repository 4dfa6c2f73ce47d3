"""Idempotent execution of ledger mutations keyed by the ``Idempotency-Key`` header.

``confirm`` and ``adjust`` are not naturally idempotent; a caller retrying
over an unreliable channel sends the same key and gets the stored response
back instead of a second ledger row.
"""

import hashlib
import json
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from .models import IdempotencyKey


def _json_safe(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def _conflict(code: str, message: str) -> dict:
    return {"data": None, "meta": None, "error": {"code": code, "message": message}}


def with_idempotency(
    *,
    key: str,
    user,
    path: str,
    method: str,
    handler: Callable[[], Tuple[dict, int]],
    request_hash: Optional[str] = None,
) -> Tuple[dict, int]:
    """Run handler idempotently and persist its response for the given key and scope.

    - Scope is derived from the caller: for authenticated users, "user:<id>"; otherwise "anon".
    - If a record exists and the stored `request_hash` differs from the provided one, returns 409.
    - If a record exists but response is not yet stored, returns 409 to indicate in-progress.
    - Expired records are discarded and the request runs as new.
    - If the handler raises, the record is removed and the exception propagates.
    """

    user_id = getattr(user, "id", None)
    scope = f"user:{user_id}" if user_id else "anon"
    method = str(method).upper()
    path = str(path)
    ttl_hours = int(getattr(settings, "INVENTORY_IDEMPOTENCY_TTL_HOURS", 24))
    now = timezone.now()

    IdempotencyKey.objects.filter(key=key, scope=scope, path=path, method=method, expires_at__lt=now).delete()
    try:
        with transaction.atomic():
            idem = IdempotencyKey.objects.create(
                key=key,
                user=user if user_id else None,
                scope=scope,
                path=path,
                method=method,
                request_hash=request_hash,
                expires_at=now + timedelta(hours=ttl_hours),
            )
    except IntegrityError:
        idem = IdempotencyKey.objects.get(key=key, scope=scope, path=path, method=method)
        # Guard against key reuse with different fingerprints
        if idem.request_hash and request_hash and idem.request_hash != request_hash:
            return _conflict("idempotencyKeyReused", "Idempotency key reused with different request payload"), 409
        if idem.response_json is not None and idem.response_code is not None:
            return idem.response_json, int(idem.response_code)
        return _conflict("requestInProgress", "Request in progress"), 409

    try:
        body, code = handler()
    except Exception:
        # Free the key so a retry after a transient failure runs again
        IdempotencyKey.objects.filter(id=idem.id).delete()
        raise
    safe_body = _json_safe(body)
    IdempotencyKey.objects.filter(id=idem.id).update(response_json=safe_body, response_code=code)
    return safe_body, code


def compute_request_hash(data: Optional[dict]) -> Optional[str]:
    """Compute a canonical SHA256 hash of the request body.

    Uses sorted keys JSON representation to stabilize the hash across equivalent payloads.
    Returns None when data is falsy or not serializable.
    """
    if not data:
        return None
    try:
        payload = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return None
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
