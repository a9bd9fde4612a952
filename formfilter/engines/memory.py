"""An in-process validation-and-binding engine.

`MemoryEngine` binds compiled rule sets to forms held in a
`formfilter.utils.dom.Document`. It mirrors the behaviour of browser-side
validation plugins closely enough that a form filter can be exercised end to
end from Python: fields are checked rule by rule, invalid inputs are
highlighted, and an error node is placed next to each invalid input.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from ..core.base_engine import BaseEngine
from ..core.config import Config
from ..utils.dom import Document, Element

logger = logging.getLogger(__name__)

# Data key under which a bound form keeps its validator handle.
VALIDATOR_DATA_KEY = "validator"


def _length(value: Any) -> int:
    return len(value) if isinstance(value, (str, list, tuple)) else len(str(value))


class MemoryEngine(BaseEngine):
    """Validates forms of an in-memory document."""

    name = "memory"
    description = "Binds rule sets to forms of an in-memory element tree."

    def __init__(self, document: Document, config: Config) -> None:
        super().__init__(document, config)
        self.add_method("required", self._required, config.default_message("required"))
        self.add_method("minlength", self._minlength, config.default_message("minlength"))
        self.add_method("maxlength", self._maxlength, config.default_message("maxlength"))

    def field_value(self, element: Element) -> Any:
        """Returns the submitted value of the field `element` belongs to.

        Checkboxes and radios are resolved across all inputs sharing the
        element's name; an unchecked group has an empty value.
        """
        if not element.is_checkable():
            return element.value
        form = self._form_of(element)
        siblings = form.fields(element.name) if form is not None and element.name else [element]
        checked = [el.value for el in siblings if el.checked]
        if element.type == "checkbox" and len(siblings) > 1:
            return checked
        return checked[0] if checked else ""

    def _form_of(self, element: Element) -> Optional[Element]:
        node = element.parent
        while node is not None and node.tag != "form":
            node = node.parent
        return node

    def _has_value(self, element: Element) -> bool:
        value = self.field_value(element)
        if isinstance(value, str):
            return bool(value.strip())
        return bool(value)

    def optional(self, element: Element) -> bool:
        return not self._has_value(element)

    def _required(self, value: Any, element: Element, param: Any) -> bool:
        if not param:
            return True
        return self._has_value(element)

    def _minlength(self, value: Any, element: Element, param: Any) -> bool:
        return self.optional(element) or _length(value) >= int(param)

    def _maxlength(self, value: Any, element: Element, param: Any) -> bool:
        return self.optional(element) or _length(value) <= int(param)

    def check(self, method_name: str, element: Element, param: Any) -> bool:
        """Runs one validation method against an element.

        Unknown methods and methods failing on a malformed parameter are
        logged and treated as passing.
        """
        predicate = self.methods.get(method_name)
        if predicate is None:
            logger.warning(f"No validation method registered under '{method_name}'")
            return True
        try:
            return bool(predicate(self.field_value(element), element, param))
        except (TypeError, ValueError) as e:
            logger.warning(f"Method '{method_name}' could not check '{element.name}' with {param!r}: {e}")
            return True

    def validate(self, selector: str, options: Dict[str, Any]) -> Optional["MemoryValidator"]:
        form = self.select_form(selector)
        if form is None:
            logger.warning(f"Nothing selected by '{selector}', can't validate")
            return None
        existing = form.data(VALIDATOR_DATA_KEY)
        if existing is not None:
            return existing
        validator = MemoryValidator(self, form, options)
        form.set_data(VALIDATOR_DATA_KEY, validator)
        logger.debug(f"Bound validator to '{selector}'")
        return validator


class MemoryValidator:
    """A live validator bound to one form.

    Attributes:
        form (Element): The bound form.
        rules (Dict[str, Dict[str, Any]]): Rules keyed by field name.
        messages (Dict[str, Dict[str, str]]): Messages keyed by field name.
        errors (Dict[str, str]): Current error message per invalid field.
    """

    def __init__(self, engine: MemoryEngine, form: Element, options: Dict[str, Any]) -> None:
        self.engine = engine
        self.form = form
        self.rules: Dict[str, Dict[str, Any]] = options.get("rules", {})
        self.messages: Dict[str, Dict[str, str]] = options.get("messages", {})
        self.error_element: str = options.get("error_element", "label")
        self.error_class: str = options.get("error_class", "error")
        self.highlight: Callable[[Element], None] = options.get("highlight") or (lambda element: None)
        self.unhighlight: Callable[[Element], None] = options.get("unhighlight") or (lambda element: None)
        self.error_placement: Optional[Callable[[Element, Element], None]] = options.get("error_placement")
        self.errors: Dict[str, str] = {}
        self._error_nodes: Dict[str, Element] = {}

    def _message(self, field_name: str, rule: str, param: Any) -> str:
        custom = self.messages.get(field_name, {}).get(rule)
        if custom:
            return custom
        template = str(self.engine.method_messages.get(rule, ""))
        try:
            return template.format(param)
        except (IndexError, KeyError, ValueError):
            return template

    def _first_failure(self, field_name: str, element: Element) -> Optional[str]:
        for rule, param in self.rules.get(field_name, {}).items():
            if param is False:
                continue
            if not self.engine.check(rule, element, param):
                return self._message(field_name, rule, param)
        return None

    def _show_error(self, field_name: str, element: Element, message: str) -> None:
        node = self._error_nodes.get(field_name)
        if node is None:
            node = Element(tag=self.error_element, attrs={"id": f"{field_name}-error"}, classes=self.error_class)
            self._error_nodes[field_name] = node
        node.text = message
        if node.parent is None:
            if self.error_placement is not None:
                self.error_placement(node, element)
            else:
                node.insert_after(element)
        self.highlight(element)

    def _clear_error(self, field_name: str, element: Element) -> None:
        node = self._error_nodes.pop(field_name, None)
        if node is not None:
            node.remove()
        self.unhighlight(element)

    def element(self, field_name: str) -> bool:
        """Validates a single field and updates its highlighting.

        Returns:
            bool: True when the field is valid or not present in the form.
        """
        elements = self.form.fields(field_name)
        if not elements:
            return True
        element = elements[0]
        message = self._first_failure(field_name, element)
        if message is None:
            self.errors.pop(field_name, None)
            self._clear_error(field_name, element)
            return True
        self.errors[field_name] = message
        self._show_error(field_name, element, message)
        return False

    def form_valid(self) -> bool:
        """Validates every field with rules; True when all are valid."""
        results = [self.element(field_name) for field_name in self.rules]
        return all(results)

    def number_of_invalids(self) -> int:
        return len(self.errors)

    def invalid_fields(self) -> List[str]:
        return list(self.errors)

    def destroy(self) -> None:
        """Removes error nodes and highlighting and unbinds from the form."""
        for field_name in list(self._error_nodes):
            elements = self.form.fields(field_name)
            if elements:
                self._clear_error(field_name, elements[0])
            else:
                self._error_nodes.pop(field_name).remove()
        self.errors.clear()
        self.form.remove_data(VALIDATOR_DATA_KEY)
