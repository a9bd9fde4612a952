"""A minimal element tree with selector queries.

Engines bind rule sets to forms held in a `Document`. The tree supports just
what binding needs: resolving simple selectors, toggling classes, attaching
data to elements, and inserting generated error nodes next to inputs.
"""
import logging
import re
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)

CHECKABLE_TYPES = ("checkbox", "radio")

# Supports `tag`, `#id`, `.class`, `[name=value]` and combinations thereof.
_SELECTOR_RE = re.compile(
    r"^(?P<tag>[a-zA-Z][\w-]*)?"
    r"(?:#(?P<id>[\w-]+))?"
    r"(?:\.(?P<cls>[\w-]+))?"
    r"(?:\[name=[\"']?(?P<name>[^\"'\]]+)[\"']?\])?$"
)


class Element:
    """A node of the document tree.

    Attributes:
        tag (str): The element's tag name.
        attrs (Dict[str, str]): HTML-like attributes (`id`, `name`, `type`).
        classes (List[str]): Class names, in insertion order.
        text (str): Text content, used by generated error nodes.
        value (Any): The current value of an input.
        checked (bool): Whether a checkbox or radio is checked.
    """

    def __init__(
        self,
        tag: str = "input",
        attrs: Optional[Dict[str, str]] = None,
        classes: str = "",
        text: str = "",
        value: Any = "",
        checked: bool = False,
    ) -> None:
        self.tag = tag
        self.attrs: Dict[str, str] = dict(attrs or {})
        self.classes: List[str] = []
        self.text = text
        self.value = value
        self.checked = checked
        self.parent: Optional["Element"] = None
        self.children: List["Element"] = []
        self._data: Dict[str, Any] = {}
        self.add_class(classes)

    @property
    def id(self) -> Optional[str]:
        return self.attrs.get("id")

    @property
    def name(self) -> Optional[str]:
        return self.attrs.get("name")

    @property
    def type(self) -> str:
        return self.attrs.get("type", "text")

    def add_class(self, names: str) -> "Element":
        for name in names.split():
            if name not in self.classes:
                self.classes.append(name)
        return self

    def remove_class(self, names: str) -> "Element":
        for name in names.split():
            if name in self.classes:
                self.classes.remove(name)
        return self

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def data(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set_data(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove_data(self, key: str) -> None:
        self._data.pop(key, None)

    def is_checkable(self) -> bool:
        return self.tag == "input" and self.type in CHECKABLE_TYPES

    def append(self, child: "Element") -> "Element":
        """Appends `child` as the last child of this element and returns it."""
        child.remove()
        child.parent = self
        self.children.append(child)
        return child

    def insert_after(self, target: "Element") -> "Element":
        """Moves this element so that it directly follows `target`."""
        if target.parent is None:
            raise ValueError("Cannot insert after an element that has no parent")
        self.remove()
        siblings = target.parent.children
        siblings.insert(siblings.index(target) + 1, self)
        self.parent = target.parent
        return self

    def remove(self) -> None:
        """Detaches this element from its parent, if any."""
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def iter_descendants(self) -> Iterator["Element"]:
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def find_all(self, predicate: Callable[["Element"], bool]) -> List["Element"]:
        return [el for el in self.iter_descendants() if predicate(el)]

    def fields(self, name: str) -> List["Element"]:
        """Returns the input elements carrying the given `name` attribute."""
        return self.find_all(lambda el: el.name == name and el.tag in ("input", "select", "textarea"))

    def matches(self, selector: str) -> bool:
        match = _SELECTOR_RE.match(selector.strip())
        if not match or not any(match.groupdict().values()):
            return False
        parts = match.groupdict()
        if parts["tag"] and parts["tag"] != self.tag:
            return False
        if parts["id"] and parts["id"] != self.id:
            return False
        if parts["cls"] and not self.has_class(parts["cls"]):
            return False
        if parts["name"] and parts["name"] != self.name:
            return False
        return True

    def __repr__(self) -> str:
        ident = f"#{self.id}" if self.id else (f"[name={self.name}]" if self.name else "")
        return f"<{self.tag}{ident}>"


class Document:
    """The root of an element tree."""

    def __init__(self) -> None:
        self.root = Element(tag="document")

    def append(self, child: Element) -> Element:
        return self.root.append(child)

    def query(self, selector: str) -> List[Element]:
        """Resolves a selector to the matching elements, in document order.

        Unsupported selector syntax matches nothing.
        """
        if not _SELECTOR_RE.match(selector.strip()):
            logger.warning(f"Unsupported selector: {selector!r}")
            return []
        return self.root.find_all(lambda el: el.matches(selector))


def _input_for(name: str, input_type: str, value: Any) -> Element:
    if input_type == "checkbox":
        return Element(attrs={"name": name, "type": input_type}, value="on", checked=bool(value))
    tag = input_type if input_type in ("select", "textarea") else "input"
    attrs = {"name": name} if tag != "input" else {"name": name, "type": input_type}
    return Element(tag=tag, attrs=attrs, value="" if value is None else value)


def build_form(
    selector: str,
    fields: Mapping[str, Any],
    values: Optional[Mapping[str, Any]] = None,
) -> Document:
    """Builds a document holding one form populated from field metadata.

    Each field's metadata may name an input `type` (text by default,
    `checkbox`, `radio`, `select`, `textarea`, ...), radio `options`, and
    `group = true` to wrap the input in an `.input-group` container.
    Checkboxes and radios are wrapped in a `.form-check` container.

    Args:
        selector (str): Form selector; an `#id` selector sets the form's id.
        fields (Mapping[str, Any]): Field name to metadata.
        values (Optional[Mapping[str, Any]]): Submitted values by field name.

    Returns:
        Document: A document containing the populated form.
    """
    values = values or {}
    document = Document()
    form_attrs = {"id": selector[1:]} if selector.startswith("#") else {}
    form = document.append(Element(tag="form", attrs=form_attrs))

    for name, meta in fields.items():
        meta = meta if isinstance(meta, Mapping) else {}
        input_type = meta.get("type", "text")
        value = values.get(name)

        if input_type == "radio":
            for option in meta.get("options", []):
                wrapper = form.append(Element(tag="div", classes="form-check"))
                wrapper.append(Element(
                    attrs={"name": name, "type": "radio"},
                    value=option,
                    checked=value == option,
                ))
            continue

        element = _input_for(name, input_type, value)
        if input_type == "checkbox":
            form.append(Element(tag="div", classes="form-check")).append(element)
        elif meta.get("group"):
            form.append(Element(tag="div", classes="input-group")).append(element)
        else:
            form.append(element)

    return document
