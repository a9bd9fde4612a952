"""Accumulates per-field validation overrides.

Overrides arrive as fragments: each registration call carries a mapping of
field name to a partial descriptor, and calls can be made any number of times
and in any order before a form is compiled. This module merges those
fragments into one `FieldOverride` per field.

Registration never fails. A descriptor that is not a mapping, or that lacks
the key an operation looks for, simply contributes nothing.
"""
import logging
import re
from typing import Any, Dict, Iterator, Mapping, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)


def _descriptor_value(descriptor: Any, *keys: str) -> Any:
    """Returns the first present key of a descriptor, or None."""
    if not isinstance(descriptor, Mapping):
        return None
    for key in keys:
        if key in descriptor:
            return descriptor[key]
    return None


def _fragments(fields: Any) -> Iterator[Tuple[str, Any]]:
    """Iterates the (field name, descriptor) pairs; non-mappings have none."""
    if not isinstance(fields, Mapping):
        return iter(())
    return iter(fields.items())


def _compile_pattern(field_name: str, pattern: Any) -> Optional[Pattern]:
    """Normalizes a pattern descriptor value into a compiled regex."""
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except (re.error, TypeError) as e:
        logger.warning(f"Ignoring invalid pattern for field '{field_name}': {e}")
        return None


class FieldOverride:
    """The cumulative override registered for a single field.

    Attributes:
        skip (bool): If True, the field is not required. Once set it stays
            set for the lifetime of the store.
        pattern (Optional[Pattern]): A regex the field value must contain.
        pattern_message (Optional[str]): Message shown when the pattern fails.
        min_length: The minimum length bound, passed through unvalidated.
        max_length: The maximum length bound, passed through unvalidated.
        messages (Dict[str, str]): Custom messages keyed by rule name.
    """

    def __init__(self) -> None:
        self.skip: bool = False
        self.pattern: Optional[Pattern] = None
        self.pattern_message: Optional[str] = None
        self.min_length: Any = None
        self.max_length: Any = None
        self.messages: Dict[str, str] = {}

    def to_dict(self) -> Dict[str, Any]:
        """Returns a plain representation suitable for display or JSON."""
        return {
            "skip": self.skip,
            "pattern": self.pattern.pattern if self.pattern is not None else None,
            "pattern_message": self.pattern_message,
            "min_length": self.min_length,
            "max_length": self.max_length,
            "messages": dict(self.messages),
        }

    def __repr__(self) -> str:
        return f"FieldOverride({self.to_dict()})"


class OverrideStore:
    """Merges override fragments into one `FieldOverride` per field name.

    The store is owned by a single form filter and mutated only through the
    registration methods below. Fields are remembered in the order they were
    first registered.
    """

    def __init__(self) -> None:
        self._overrides: Dict[str, FieldOverride] = {}

    def _ensure(self, field_name: str) -> FieldOverride:
        override = self._overrides.get(field_name)
        if override is None:
            override = FieldOverride()
            self._overrides[field_name] = override
        return override

    def mark_optional(self, fields: Mapping[str, Any]) -> None:
        """Marks fields as optional, exempting them from the required rule.

        Only descriptors with `required` set to exactly `False` mark a field.
        There is no way to make a field required again.

        Args:
            fields: Mapping of field name to `{"required": bool}`.
        """
        for field_name, descriptor in _fragments(fields):
            override = self._ensure(field_name)
            if _descriptor_value(descriptor, "required") is False:
                override.skip = True
                logger.debug(f"Field '{field_name}' marked optional")

    # Name used by existing callers.
    is_required = mark_optional

    def add_pattern(self, fields: Mapping[str, Any]) -> None:
        """Registers a pattern rule for one or more fields.

        Args:
            fields: Mapping of field name to
                `{"pattern": str | Pattern, "message": str}`. The message is
                optional; a default is resolved at compile time.
        """
        for field_name, descriptor in _fragments(fields):
            override = self._ensure(field_name)
            override.pattern = _compile_pattern(field_name, _descriptor_value(descriptor, "pattern"))
            override.pattern_message = _descriptor_value(descriptor, "message")

    def add_min_length(self, fields: Mapping[str, Any]) -> None:
        """Registers a minimum length for one or more fields."""
        for field_name, descriptor in _fragments(fields):
            self._ensure(field_name).min_length = _descriptor_value(descriptor, "minLength", "min_length")

    def add_max_length(self, fields: Mapping[str, Any]) -> None:
        """Registers a maximum length for one or more fields."""
        for field_name, descriptor in _fragments(fields):
            self._ensure(field_name).max_length = _descriptor_value(descriptor, "maxLength", "max_length")

    def add_messages(self, fields: Mapping[str, Any]) -> None:
        """Merges custom messages into the fields' message maps.

        A descriptor without a `messages` mapping is skipped entirely, so it
        neither creates an override nor touches an existing one.

        Args:
            fields: Mapping of field name to
                `{"messages": {rule_name: message}}`.
        """
        for field_name, descriptor in _fragments(fields):
            messages = _descriptor_value(descriptor, "messages")
            if not messages or not isinstance(messages, Mapping):
                continue
            self._ensure(field_name).messages.update(messages)

    add_message = add_messages

    def get(self, field_name: str) -> Optional[FieldOverride]:
        return self._overrides.get(field_name)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Returns every override as a plain dict, keyed by field name."""
        return {name: override.to_dict() for name, override in self._overrides.items()}

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._overrides

    def __iter__(self) -> Iterator[str]:
        return iter(self._overrides)

    def __len__(self) -> int:
        return len(self._overrides)
