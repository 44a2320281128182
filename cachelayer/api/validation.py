"""
Request validation for the HTTP layer. Every check raises ValidationError,
which the app turns into a 400 response.
"""
import re
from typing import Any, List, Optional, Tuple

from cachelayer.datastore import MAX_KEY_LENGTH, is_number
from cachelayer.exceptions import ValidationError

KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_:-]+$")
MAX_TTL_SECONDS = 86400 * 365
MAX_BATCH_OPERATIONS = 100


def validate_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise ValidationError("Invalid key format: key must be a non-empty string")
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(f"Invalid key format: key must be at most {MAX_KEY_LENGTH} characters")
    if not KEY_PATTERN.match(key):
        raise ValidationError("Invalid key format: only letters, digits, '_', '-' and ':' are allowed")
    return key


def validate_ttl(ttl: Any, required: bool = False) -> Optional[int]:
    """
    TTL is a whole number of seconds between 0 and one year
    """
    if ttl is None:
        if required:
            raise ValidationError("TTL is required")
        return None
    if not is_number(ttl) or (isinstance(ttl, float) and not ttl.is_integer()):
        raise ValidationError("TTL must be a non-negative integer")
    if ttl < 0 or ttl > MAX_TTL_SECONDS:
        raise ValidationError(f"TTL must be between 0 and {MAX_TTL_SECONDS} seconds")
    return int(ttl)


def require_object(body: Any) -> dict:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def validate_set_payload(body: Any) -> Tuple[str, Any, Optional[int]]:
    """
    {"key": ..., "value": ..., "ttl": optional} -> (key, value, ttl)
    """
    body = require_object(body)
    key = validate_key(body.get("key"))
    if "value" not in body:
        raise ValidationError("Invalid payload: value is required")
    ttl = validate_ttl(body.get("ttl"))
    return key, body["value"], ttl


def validate_batch_operations(body: Any) -> List[Any]:
    """
    Check the batch envelope only; each operation is validated on its own
    so one bad item does not reject the others.
    """
    body = require_object(body)
    operations = body.get("operations")
    if not isinstance(operations, list):
        raise ValidationError("Invalid batch payload: operations must be an array")
    if not 1 <= len(operations) <= MAX_BATCH_OPERATIONS:
        raise ValidationError(f"Invalid batch payload: operations must hold 1 to {MAX_BATCH_OPERATIONS} items")
    return operations


def validate_batch_keys(body: Any) -> List[Any]:
    body = require_object(body)
    keys = body.get("keys")
    if not isinstance(keys, list):
        raise ValidationError("Keys must be an array")
    return keys


def validate_delta(body: Any) -> Any:
    body = {} if body is None else require_object(body)
    delta = body.get("delta", 1)
    if not is_number(delta):
        raise ValidationError("Delta must be a number")
    return delta
