"""
JSON Schema checks for data entering reqflow.

Persistence records, generation output and impact assessments are all
checked here before they are turned into models. Schemas live in
reqflow/schemas/<name>.schema.json.
"""

import json
from pathlib import Path

import jsonschema


class ValidationError(Exception):
    """Data rejected by a schema or a range check."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        location = f" at {path}" if path else ""
        super().__init__(f"[{schema_name}] {message}{location}")


SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"

_schemas: dict[str, dict] = {}


def _schema(schema_name: str) -> dict:
    if schema_name in _schemas:
        return _schemas[schema_name]
    path = SCHEMAS_DIR / f"{schema_name}.schema.json"
    if not path.exists():
        raise ValidationError(schema_name, f"no schema file at {path}")
    _schemas[schema_name] = json.loads(path.read_text())
    return _schemas[schema_name]


def validate(data, schema_name: str) -> None:
    """
    Check data against reqflow/schemas/<schema_name>.schema.json.

    Raises:
        ValidationError: Carrying the first violation and its dotted path
    """
    try:
        jsonschema.validate(instance=data, schema=_schema(schema_name))
    except jsonschema.ValidationError as e:
        where = ".".join(str(p) for p in e.absolute_path) or "(root)"
        raise ValidationError(schema_name, e.message, where) from None
