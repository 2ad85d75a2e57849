"""
Manifest and attribute validation.

Every check returns an (is_valid, error_message) pair; callers decide
whether a rejection is fatal.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

logger = logging.getLogger(__name__)

MANIFEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["resources"],
    "properties": {
        "resources": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["kind", "name"],
                "additionalProperties": False,
                "properties": {
                    "kind": {"type": "string", "minLength": 1},
                    "name": {"type": "string", "pattern": "^[A-Za-z0-9_-]+$"},
                    "attributes": {"type": "object"},
                },
            },
        },
    },
}


def _describe_errors(validator: Draft7Validator, document: Any) -> Optional[str]:
    """Render every violation as ``path: message``, or None if there are none."""
    problems = sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.absolute_path])
    if not problems:
        return None
    return "; ".join(
        f"{'.'.join(str(p) for p in e.absolute_path) or '(root)'}: {e.message}"
        for e in problems
    )


def validate_controller_schema(schema: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Check the attribute schema a resource controller declares.

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        Draft7Validator.check_schema(schema)
    except SchemaError as e:
        return False, f"attribute schema is not valid Draft 7: {e.message}"
    return True, None


def validate_attributes(
    attributes: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Check one resource's desired attributes against its kind's schema.

    All violations are reported together, each prefixed with the attribute
    path (``(root)`` for missing or unknown attributes).

    Returns:
        Tuple of (is_valid, error_message)
    """
    error = _describe_errors(Draft7Validator(schema), attributes)
    if error:
        logger.debug(f"Rejected attributes {attributes}: {error}")
        return False, error
    return True, None


def validate_manifest(manifest: Any) -> Tuple[bool, Optional[str]]:
    """Check the document shape: a mapping with a list of kind/name/attributes entries."""
    if not isinstance(manifest, dict):
        return False, "(root): manifest must be a mapping"
    error = _describe_errors(Draft7Validator(MANIFEST_SCHEMA), manifest)
    return (False, error) if error else (True, None)
