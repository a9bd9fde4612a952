"""
Base engine class that all validation-and-binding engines inherit from.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Config
    from ..utils.dom import Document, Element

# Signature of a validation method: (value, element, param) -> bool.
Predicate = Callable[[Any, "Element", Any], bool]


class EngineNotFoundError(LookupError):
    """Raised when no engine is registered under the requested name."""


class BaseEngine(ABC):
    """Abstract base class for validation-and-binding engines.

    An engine owns the validation methods (built-in and custom), knows how
    to resolve selectors against a document, and binds a compiled rule set
    to a form. The form filter only talks to engines through this class, so
    any engine can be swapped in as long as it honours the same contract.

    Attributes:
        name (str): The name the engine is registered under.
        description (str): A brief explanation of what the engine binds to.
    """

    name: str = "UnnamedEngine"
    description: str = "No description provided"

    def __init__(self, document: "Document", config: "Config") -> None:
        """Initializes the engine with the document it binds to.

        Args:
            document (Document): The document whose forms are bound.
            config (Config): The application's configuration object.
        """
        self.document = document
        self.config = config
        self.methods: Dict[str, Predicate] = {}
        self.method_messages: Dict[str, str] = {}

    def add_method(self, name: str, predicate: Predicate, message: str) -> None:
        """Registers a named validation method usable in rule sets.

        Registering a name twice replaces the earlier method.

        Args:
            name (str): The rule name the method is referenced by.
            predicate (Predicate): Returns True when the value is valid.
            message (str): Message used when a rule set supplies none.
        """
        self.methods[name] = predicate
        self.method_messages[name] = message

    def query(self, selector: str) -> List["Element"]:
        """Resolves a selector to zero or more elements of the document."""
        return self.document.query(selector)

    def select_form(self, selector: str) -> Optional["Element"]:
        """Returns the first form matched by `selector`, skipping other tags."""
        for element in self.query(selector):
            if element.tag == "form":
                return element
        return None

    @abstractmethod
    def optional(self, element: "Element") -> bool:
        """Returns True if the element may be skipped by custom methods.

        Custom methods call this first so that an empty, non-required field
        is not reported as malformed.
        """
        raise NotImplementedError("Subclasses must implement optional()")

    @abstractmethod
    def validate(self, selector: str, options: Dict[str, Any]) -> Optional[Any]:
        """Binds a rule set to the form matched by `selector`.

        Args:
            selector (str): Selector of the form to bind.
            options (Dict[str, Any]): Rules, messages and binding callbacks.

        Returns:
            The live validator handle, or None when no form matches.
        """
        raise NotImplementedError("Subclasses must implement validate()")
