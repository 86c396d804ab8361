"""JSON Schema validation of stored log entries."""

import json
from collections import Counter

import jsonschema

ENTRY_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Log entry",
    "type": "object",
    "required": ["date", "level", "category", "message"],
    "properties": {
        "date": {"type": "string", "minLength": 1},
        "level": {"type": "string", "minLength": 1},
        "category": {"type": "string"},
        "message": {"type": "string"},
    },
    "additionalProperties": False,
}


class LogEntryValidator:
    """Validates decoded array elements against ENTRY_SCHEMA or a schema file.

    Counts checked and rejected elements, and which schema keywords failed,
    across every call.
    """

    def __init__(self, schema_path: str | None = None):
        if schema_path is None:
            schema = ENTRY_SCHEMA
        else:
            with open(schema_path, "r") as f:
                schema = json.load(f)

        self._validator = jsonschema.Draft202012Validator(schema)
        self.checked = 0
        self.rejected = 0
        self.failed_keywords: Counter = Counter()

    def validate(self, element) -> tuple[bool, list[str]]:
        """Returns (is_valid, error messages) for one decoded element."""
        self.checked += 1
        errors = list(self._validator.iter_errors(element))
        if errors:
            self.rejected += 1
            self.failed_keywords.update(error.validator for error in errors)
        return not errors, [error.message for error in errors]

    def validate_array(self, elements: list) -> list[tuple[int, list[str]]]:
        """Validate every element; returns (index, errors) for the invalid ones."""
        failures = []
        for index, element in enumerate(elements):
            is_valid, errors = self.validate(element)
            if not is_valid:
                failures.append((index, errors))
        return failures

    def get_stats(self) -> dict:
        return {
            "total": self.checked,
            "valid": self.checked - self.rejected,
            "invalid": self.rejected,
            "error_types": dict(self.failed_keywords),
        }
