from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema import FormatChecker

SCHEMA_NAMES = {
    "abci_query": "abci.query.schema.json",
    "header": "header.schema.json",
    "status": "status.schema.json",
    "account": "auth.account.schema.json",
    "tx_response": "tx.response.schema.json",
    "delegation": "staking.delegation.schema.json",
    "unbonding": "staking.unbonding.schema.json",
    "redelegations": "staking.redelegations.schema.json",
}


class SchemaValidationError(ValueError):
    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def __str__(self) -> str:
        base = super().__str__()
        if not self.errors:
            return base
        return f"{base} ({'; '.join(self.errors)})"


@dataclass(frozen=True)
class SchemaRegistry:
    schema_root: Path

    @staticmethod
    def discover_root(start: Path | None = None) -> Path:
        if start is None:
            start = Path(__file__).resolve().parent
        for candidate in [start, *start.parents]:
            schema_root = candidate / "schemas" / "v1"
            if schema_root.is_dir():
                return schema_root
        raise FileNotFoundError("Unable to locate aletheia schemas/v1 directory.")

    @classmethod
    def default(cls) -> "SchemaRegistry":
        return _default_registry()

    def validator_for(self, schema_filename: str) -> jsonschema.Validator:
        return _validator(self.schema_root, schema_filename)

    def validate_instance(self, instance: Any, schema_filename: str) -> None:
        validator = self.validator_for(schema_filename)
        errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
        if errors:
            formatted = [self._format_error(err) for err in errors]
            raise SchemaValidationError(
                f"Schema validation failed for {schema_filename}.",
                errors=formatted,
            )

    @staticmethod
    def _format_error(error: jsonschema.ValidationError) -> str:
        location = "/".join(str(part) for part in error.path) or "<root>"
        return f"{location}: {error.message}"


@lru_cache(maxsize=1)
def _default_registry() -> SchemaRegistry:
    return SchemaRegistry(schema_root=SchemaRegistry.discover_root())


@lru_cache(maxsize=32)
def _validator(schema_root: Path, schema_filename: str) -> jsonschema.Validator:
    with (schema_root / schema_filename).open("r", encoding="utf-8") as f:
        schema = json.load(f)
    validator_cls = jsonschema.validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema, format_checker=FormatChecker())
