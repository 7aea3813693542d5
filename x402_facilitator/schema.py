"""
JSON schemas for the two wire inputs: the decoded payment header and the
merchant's payment requirement.

Validation uses a Draft 2020-12 validator whose ``integer`` type admits
Python ints only. Stock jsonschema also accepts integral floats such as
``5.0``; those would reach signature encoding as floats.
"""

from __future__ import annotations

from typing import Any

import jsonschema  # type: ignore[import-untyped]
from jsonschema.exceptions import best_match  # type: ignore[import-untyped]

from x402_facilitator.errors import SchemaViolation

DECIMAL_PATTERN = "^(0|[1-9][0-9]*)$"

PROOF_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["x402Version", "scheme", "network", "payload"],
    "properties": {
        "x402Version": {"type": "integer", "minimum": 0},
        "scheme": {"type": "string", "minLength": 1},
        "network": {"type": "string", "minLength": 1},
        "payload": {
            "type": "object",
            "required": ["from", "to", "amount", "nonce", "deadline", "signature"],
            "properties": {
                "from": {"type": "string", "minLength": 1},
                "to": {"type": "string", "minLength": 1},
                "amount": {"type": "string", "pattern": DECIMAL_PATTERN},
                "nonce": {"type": ["string", "integer"]},
                "deadline": {"type": "integer", "minimum": 0},
                "signature": {"type": "string"},
                "signedTransaction": {"type": "string", "minLength": 1},
            },
        },
    },
}

REQUIREMENT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["scheme", "network", "maxAmountRequired", "payTo"],
    "properties": {
        "scheme": {"type": "string", "minLength": 1},
        "network": {"type": "string", "minLength": 1},
        "maxAmountRequired": {"type": "string", "pattern": DECIMAL_PATTERN},
        "payTo": {"type": "string", "minLength": 1},
        "asset": {"type": ["string", "null"]},
        "facilitator": {"type": ["string", "null"]},
        "maxTimeoutSeconds": {"type": "integer", "minimum": 0},
    },
}


def _is_strict_integer(checker: Any, instance: Any) -> bool:
    return isinstance(instance, int) and not isinstance(instance, bool)


StrictValidator = jsonschema.validators.extend(
    jsonschema.Draft202012Validator,
    type_checker=jsonschema.Draft202012Validator.TYPE_CHECKER.redefine(
        "integer", _is_strict_integer
    ),
)

_PROOF_VALIDATOR = StrictValidator(PROOF_SCHEMA)
_REQUIREMENT_VALIDATOR = StrictValidator(REQUIREMENT_SCHEMA)


def _validate(instance: Any, validator: Any, root: str | None) -> None:
    error = best_match(validator.iter_errors(instance))
    if error is not None:
        location = ".".join(str(p) for p in (root, *error.absolute_path) if p is not None)
        location = location or "<root>"
        raise SchemaViolation(f"{location}: {error.message}")


def validate_proof(instance: Any) -> None:
    """Raise SchemaViolation unless ``instance`` is a well-formed proof."""
    _validate(instance, _PROOF_VALIDATOR, None)


def validate_requirement(instance: Any) -> None:
    """Raise SchemaViolation unless ``instance`` is a well-formed requirement."""
    _validate(instance, _REQUIREMENT_VALIDATOR, "paymentRequirements")
