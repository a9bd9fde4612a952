"""The form filter: override registration, compilation and binding.

This module ties the pieces together:
1.  Discovering the available `BaseEngine` implementations.
2.  Accumulating overrides through the registration operations.
3.  Compiling the overrides against a form's field list.
4.  Handing the compiled rule set, together with the highlighting and
    error-placement callbacks, to the engine that binds the form.
"""

import inspect
import logging
import os
import pkgutil
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from .base_engine import BaseEngine, EngineNotFoundError
from .compiler import CompiledRuleSet, RuleCompiler
from .config import Config
from .overrides import OverrideStore
from .. import engines as engines_package
from ..utils.dom import Document, Element

# Initialize a logger for this module.
logger = logging.getLogger(__name__)

# Data attached to a bound form by the engine and by unobtrusive adapters.
BOUND_DATA_KEYS = ("validator", "unobtrusiveValidation")


def discover_engines() -> List[Type[BaseEngine]]:
    """Discovers all engine classes within the `formfilter.engines` package.

    Returns:
        List[Type[BaseEngine]]: The discovered engine classes.
    """
    engines = []
    path = os.path.dirname(engines_package.__file__)

    for _, name, _ in pkgutil.iter_modules([path]):
        try:
            module = __import__(f"formfilter.engines.{name}", fromlist=["*"])
        except ImportError as e:
            logger.warning(f"Could not import engine module {name}: {e}")
            continue
        for _, item in inspect.getmembers(module, inspect.isclass):
            if issubclass(item, BaseEngine) and item is not BaseEngine and item not in engines:
                engines.append(item)
    return engines


def create_engine(name: str, document: Document, config: Config) -> BaseEngine:
    """Instantiates the engine registered under `name`.

    Raises:
        EngineNotFoundError: If no discovered engine has that name.
    """
    for engine_cls in discover_engines():
        if engine_cls.name == name:
            return engine_cls(document, config)
    raise EngineNotFoundError(f"No engine named '{name}'")


class FormFilter:
    """Builds and binds the validation configuration of one form.

    Overrides can be registered at any time and in any order; they are read
    when the form is compiled or bound. Each instance owns its own override
    store.

    Example:
        >>> form_filter = FormFilter(engine)
        >>> form_filter.add_min_length({"email": {"minLength": 5}})
        >>> form_filter.add_message({"email": {"messages": {"minlength": "Too short!"}}})
        >>> validator = form_filter.init("#signup", {"email": {}, "name": {}})
    """

    def __init__(self, engine: Optional[BaseEngine] = None, config: Optional[Config] = None) -> None:
        """Initializes the form filter.

        Args:
            engine (Optional[BaseEngine]): The engine forms are bound with.
                Only `init` and `destroy` need one.
            config (Optional[Config]): The configuration; defaults to the
                engine's configuration, or a freshly loaded one.
        """
        self.engine = engine
        self.config = config or (engine.config if engine is not None else Config())
        self.fields: List[str] = []
        self.overrides = OverrideStore()
        self.compiler = RuleCompiler(self.config)

    def mark_optional(self, fields: Mapping[str, Any]) -> None:
        """Marks fields with `{"required": False}` as optional."""
        self.overrides.mark_optional(fields)

    is_required = mark_optional

    def add_pattern(self, fields: Mapping[str, Any]) -> None:
        """Adds a pattern rule, with an optional message, for each field."""
        self.overrides.add_pattern(fields)

    def add_min_length(self, fields: Mapping[str, Any]) -> None:
        self.overrides.add_min_length(fields)

    def add_max_length(self, fields: Mapping[str, Any]) -> None:
        self.overrides.add_max_length(fields)

    def add_message(self, fields: Mapping[str, Any]) -> None:
        """Merges custom per-rule messages for each field."""
        self.overrides.add_messages(fields)

    add_messages = add_message

    def compile(self, field_names: Iterable[str]) -> CompiledRuleSet:
        """Compiles the registered overrides against a field list."""
        return self.compiler.compile(field_names, self.overrides, self.engine)

    def _require_engine(self) -> BaseEngine:
        if self.engine is None:
            raise EngineNotFoundError("FormFilter has no engine to bind forms with")
        return self.engine

    def binding_options(self, rule_set: CompiledRuleSet) -> Dict[str, Any]:
        """Builds the options an engine binds a form with.

        The callbacks highlight invalid inputs and place each error node
        after its input, or after the input's container for grouped inputs,
        checkboxes and radios.
        """
        highlight_class = self.config.binding_option("highlight_class")
        placement_class = self.config.binding_option("placement_class")
        group_class = self.config.binding_option("group_class")

        def highlight(element: Element) -> None:
            element.add_class(highlight_class)

        def unhighlight(element: Element) -> None:
            element.remove_class(highlight_class)

        def error_placement(error: Element, element: Element) -> None:
            error.add_class(placement_class)
            parent = element.parent
            if parent is not None and parent.tag != "form" and (
                parent.has_class(group_class) or element.is_checkable()
            ):
                error.insert_after(parent)
            else:
                error.insert_after(element)

        options = rule_set.as_dict()
        options.update({
            "error_element": self.config.binding_option("error_element"),
            "error_class": self.config.binding_option("error_class"),
            "highlight": highlight,
            "unhighlight": unhighlight,
            "error_placement": error_placement,
        })
        return options

    def init(self, form_selector: str, items: Mapping[str, Any]) -> Optional[Any]:
        """Compiles the overrides for a form and binds them to it.

        Args:
            form_selector (str): The form selector, e.g. "#signup".
            items (Mapping[str, Any]): The form's fields. Only the keys are
                used; values are form-level metadata passed through.

        Returns:
            The engine's validator handle, or None if no form matched.
        """
        engine = self._require_engine()
        self.fields = list(items)
        rule_set = self.compile(self.fields)
        logger.debug(f"Binding {len(self.fields)} field(s) to '{form_selector}'")
        return engine.validate(form_selector, self.binding_options(rule_set))

    def destroy(self, form_selector: str) -> None:
        """Unbinds the validator of a form, if one is bound.

        Safe to call repeatedly and on selectors that match nothing.
        """
        if self.engine is None:
            return
        form = self.engine.select_form(form_selector)
        if form is None:
            return
        validator = form.data("validator")
        if validator is None:
            return
        for key in BOUND_DATA_KEYS:
            form.remove_data(key)
        validator.destroy()
        logger.debug(f"Destroyed validator of '{form_selector}'")
