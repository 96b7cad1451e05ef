"""
Error taxonomy for the triage core.

None of these are fatal to the hosting process. Each one has a fixed
recovery point:

- ``UpstreamError``: the LLM endpoint failed; the resolver falls back to
  the rule-based classifier.
- ``FieldValidationError``: an LLM field was outside its enumeration; the
  AI classifier substitutes a safe default and logs it.
- ``StorageError``: the task store rejected a write; the chat reply
  degrades to a generic acknowledgement.
- ``ConfigurationError``: a credential is missing; only the feature that
  needs it is disabled.
"""

from __future__ import annotations

from typing import Any


class RepairDeskError(Exception):
    """Base class for all triage-core errors."""


class UpstreamError(RepairDeskError):
    """The external model call errored, timed out, or returned nothing usable."""


class FieldValidationError(RepairDeskError):
    """A single field in a model response failed validation."""

    def __init__(self, field: str, value: Any, default: Any) -> None:
        self.field = field
        self.value = value
        self.default = default
        super().__init__(f"Invalid value for {field!r}: {value!r} (using {default!r})")


class StorageError(RepairDeskError):
    """The task store could not complete an operation."""


class ConfigurationError(RepairDeskError):
    """A required credential or setting is missing."""
