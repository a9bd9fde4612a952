"""Compiles accumulated overrides into a rule set for a validation engine.

The compiler walks the authoritative field list of a form, in order, and for
each field derives its rules and messages from the field's override (or from
the defaults when it has none). Overrides registered for fields outside the
list are ignored.
"""
import copy
import logging
from typing import Any, Dict, Iterable, NamedTuple, Optional, Pattern, TYPE_CHECKING

from .config import Config
from .overrides import FieldOverride, OverrideStore

if TYPE_CHECKING:
    from .base_engine import BaseEngine, Predicate

logger = logging.getLogger(__name__)

PATTERN_SUFFIX = "_pattern"


class CompiledRuleSet(NamedTuple):
    """The `rules` and `messages` of a form, keyed by field name."""

    rules: Dict[str, Dict[str, Any]]
    messages: Dict[str, Dict[str, str]]

    def as_dict(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Returns an independent copy, safe to hand to an engine."""
        return {"rules": copy.deepcopy(self.rules), "messages": copy.deepcopy(self.messages)}


def pattern_method_name(field_name: str) -> str:
    """Returns the rule name used for a field's pattern check."""
    return f"{field_name}{PATTERN_SUFFIX}"


def _pattern_predicate(engine: "BaseEngine", pattern: Pattern) -> "Predicate":
    def predicate(value: Any, element: Any, param: Any = None) -> bool:
        return engine.optional(element) or pattern.search(str(value)) is not None
    return predicate


class RuleCompiler:
    """Turns an `OverrideStore` and a field list into a `CompiledRuleSet`.

    Policies are applied per field in a fixed order: required, pattern,
    minimum length, maximum length, and finally the custom message overlay.
    The overlay runs last so that every synthesized default, the required
    message included, can be replaced through `add_messages`.
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config()

    def _bound_is_set(self, value: Any) -> bool:
        if self.config.get("strict_bounds", False):
            return value is not None
        return bool(value)

    def _default_message(self, rule: str, *args: Any) -> str:
        """Formats a configured default message, keeping malformed templates as-is."""
        template = str(self.config.default_message(rule))
        if not args:
            return template
        try:
            return template.format(*args)
        except (IndexError, KeyError, ValueError) as e:
            logger.warning(f"Could not format default '{rule}' message {template!r}: {e}")
            return template

    def compile(
        self,
        field_names: Iterable[str],
        store: OverrideStore,
        engine: Optional["BaseEngine"] = None,
    ) -> CompiledRuleSet:
        """Compiles the rules and messages for the given fields.

        Args:
            field_names (Iterable[str]): The form's fields, in display order.
            store (OverrideStore): The accumulated overrides.
            engine (Optional[BaseEngine]): When given, each pattern check is
                registered on it as a named method.

        Returns:
            CompiledRuleSet: One rules entry and one messages entry per field.
        """
        rules: Dict[str, Dict[str, Any]] = {}
        messages: Dict[str, Dict[str, str]] = {}

        for field_name in field_names:
            override = store.get(field_name) or FieldOverride()
            field_rules, field_messages = self._compile_field(field_name, override, engine)
            rules[field_name] = field_rules
            messages[field_name] = field_messages

        logger.debug(f"Compiled rules for {len(rules)} field(s)")
        return CompiledRuleSet(rules=rules, messages=messages)

    def _compile_field(self, field_name: str, override: FieldOverride, engine: Optional["BaseEngine"]):
        rules: Dict[str, Any] = {}
        messages: Dict[str, str] = {}

        if override.skip:
            rules["required"] = False
        else:
            rules["required"] = True
            messages["required"] = self._default_message("required")

        if override.pattern is not None:
            method_name = pattern_method_name(field_name)
            message = override.pattern_message or self._default_message("pattern")
            if engine is not None:
                engine.add_method(method_name, _pattern_predicate(engine, override.pattern), message)
            rules[method_name] = True
            messages[method_name] = message

        if self._bound_is_set(override.min_length):
            rules["minlength"] = override.min_length
            messages["minlength"] = (
                override.messages.get("minlength")
                or self._default_message("minlength", override.min_length)
            )

        if self._bound_is_set(override.max_length):
            rules["maxlength"] = override.max_length
            messages["maxlength"] = (
                override.messages.get("maxlength")
                or self._default_message("maxlength", override.max_length)
            )

        # Custom messages win over every default, including "required".
        messages.update(override.messages)

        return rules, messages
