"""Loads form definitions from TOML or JSON files.

A definition describes one form and the overrides of its fields, so that a
rule set can be compiled or checked without writing Python:

    [form]
    selector = "#signup"
    fields = ["email", "nickname"]

    [fields.email]
    pattern = "^[^@]+@[^@]+$"
    message = "Enter a valid email address."
    minLength = 5
    messages = { minlength = "Too short!" }

    [fields.nickname]
    required = false
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union, TYPE_CHECKING

try:
    import tomllib  # Available in Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for Python versions < 3.11

if TYPE_CHECKING:
    from ..core.form_filter import FormFilter

logger = logging.getLogger(__name__)


class DefinitionError(Exception):
    """Raised when a definition file cannot be read or parsed."""


def load_definition(file_path: Union[str, Path]) -> Dict[str, Any]:
    """Reads a form definition from a `.toml` or `.json` file.

    Args:
        file_path (Union[str, Path]): Path to the definition file.

    Returns:
        Dict[str, Any]: The definition, with `form` and `fields` tables
        always present.

    Raises:
        DefinitionError: If the file cannot be read, has an unknown suffix,
            does not parse, or its `form` or `fields` is not a table.
    """
    path = Path(file_path)
    try:
        if path.suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        elif path.suffix == ".json":
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            raise DefinitionError(f"Unsupported definition format: {path.name}")
    except (OSError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise DefinitionError(f"Could not load definition from {path}: {e}") from e

    if not isinstance(data, dict):
        raise DefinitionError(f"Definition in {path} must be a table")
    for key in ("form", "fields"):
        data.setdefault(key, {})
        if not isinstance(data[key], dict):
            raise DefinitionError(f"'{key}' in {path} must be a table")
    fields = data["form"].get("fields")
    if fields is not None and not isinstance(fields, list):
        raise DefinitionError(f"'form.fields' in {path} must be a list")
    return data


def field_names(definition: Mapping[str, Any]) -> List[str]:
    """Returns the form's field list: `form.fields`, else the field tables."""
    listed = definition.get("form", {}).get("fields")
    if listed:
        return [str(name) for name in listed]
    return list(definition.get("fields", {}))


def field_metadata(definition: Mapping[str, Any]) -> Dict[str, Any]:
    """Returns field name to metadata for every field of the form."""
    tables = definition.get("fields", {})
    return {name: tables.get(name, {}) for name in field_names(definition)}


def apply_definition(form_filter: "FormFilter", definition: Mapping[str, Any]) -> None:
    """Replays a definition's field tables through the registration calls.

    Each field is registered in the order optional, pattern, minimum length,
    maximum length and messages, which keeps a table's own `messages` in
    effect over the synthesized defaults.
    """
    for name, spec in definition.get("fields", {}).items():
        if not isinstance(spec, Mapping):
            logger.warning(f"Ignoring field '{name}': expected a table, got {type(spec).__name__}")
            continue
        if "required" in spec:
            form_filter.mark_optional({name: spec})
        if "pattern" in spec:
            form_filter.add_pattern({name: spec})
        if "minLength" in spec or "min_length" in spec:
            form_filter.add_min_length({name: spec})
        if "maxLength" in spec or "max_length" in spec:
            form_filter.add_max_length({name: spec})
        if "messages" in spec:
            form_filter.add_message({name: spec})
