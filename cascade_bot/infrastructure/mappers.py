from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from ..domain import AuthError, Credential, EntitySpec, Record


def _coerce(mapping: Mapping[str, Any], key: str | None, default: Any = None) -> Any:
    if not key:
        return default
    value = mapping.get(key, default)
    return value if value is not None else default


def record_from_row(row: Mapping[str, Any], entity: EntitySpec) -> Record | None:
    record_id = str(_coerce(row, entity.id_field, "") or "").strip()
    if not record_id:
        return None
    parent_id = str(_coerce(row, entity.parent_field, "") or "").strip() or None
    extra = {
        key: value
        for key, value in row.items()
        if key not in entity.fields and not key.startswith("@odata.")
    }
    return Record(
        id=record_id,
        display_name=str(_coerce(row, entity.name_field, "") or "").strip(),
        parent_id=parent_id,
        extra=MappingProxyType(extra),
    )


def credential_from_payload(payload: Any, now: float) -> Credential:
    if not isinstance(payload, Mapping):
        raise AuthError("Token response is not a JSON object")
    token = str(_coerce(payload, "access_token", "") or "").strip()
    if not token:
        raise AuthError("Token response has no access_token")
    expires_at = None
    expires_in = _coerce(payload, "expires_in")
    expires_on = _coerce(payload, "expires_on")
    try:
        if expires_in is not None:
            expires_at = now + float(expires_in)
        elif expires_on is not None:
            expires_at = float(expires_on)
    except (TypeError, ValueError) as exc:
        raise AuthError(f"Token response has an invalid expiry: {exc}") from exc
    return Credential(token=token, expires_at=expires_at, issued_at=now)


def error_message_from_body(body: Any) -> str | None:
    """Pull a human readable message out of an OData/REST error payload."""
    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if isinstance(error, Mapping):
        message = error.get("message") or error.get("code")
        return str(message) if message else None
    if isinstance(error, str) and error:
        description = body.get("error_description")
        return f"{error}: {description}" if description else error
    message = body.get("message")
    return str(message) if message else None
