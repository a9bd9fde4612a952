"""Defines the command-line interface for formfilter.

This module uses the `click` library to expose form definitions on the
command line: compiling a definition into its rules and messages, checking
submitted values against a definition, and managing the user configuration.
"""
import json
import logging
import sys
from typing import Any, Dict, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.base_engine import EngineNotFoundError
from .core.compiler import CompiledRuleSet
from .core.config import Config, USER_CONFIG_PATH
from .core.form_filter import FormFilter, create_engine
from .utils.definitions import DefinitionError, apply_definition, field_metadata, field_names, load_definition
from .utils.dom import build_form

console = Console()

logger = logging.getLogger(__name__)

DEFAULT_SELECTOR = "#form"


class AliasedGroup(click.Group):
    """A custom click Group that supports command aliases and case-insensitivity."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._aliases: Dict[str, str] = {}

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        """Gets a command by name, checking for aliases and prefixes."""
        cmd_name = cmd_name.lower()
        rv = super().get_command(ctx, cmd_name)
        if rv is not None:
            return rv
        if cmd_name in self._aliases:
            return super().get_command(ctx, self._aliases[cmd_name])
        matches = [x for x in self.list_commands(ctx) if x.startswith(cmd_name)]
        if not matches:
            return None
        if len(matches) == 1:
            return super().get_command(ctx, matches[0])
        ctx.fail(f"Ambiguous command: '{cmd_name}'. Matches: {', '.join(sorted(matches))}")
        return None

    def add_alias(self, alias: str, command_name: str) -> None:
        self._aliases[alias.lower()] = command_name.lower()


def _load(definition_path: str) -> Dict[str, Any]:
    try:
        return load_definition(definition_path)
    except DefinitionError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@click.group(cls=AliasedGroup, invoke_without_command=True, context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="formfilter")
@click.option("--verbose", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """Compile and check declarative form validation rules."""
    log_level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=log_level, format='%(asctime)s - %(levelname)s - %(message)s')
    logger.debug("Debug mode enabled.")

    if ctx.invoked_subcommand is None:
        console.print("Use 'formfilter compile <definition>' to see a form's rules, or 'formfilter --help' for more commands.")


@main.command(name="compile")
@click.argument("definition", type=click.Path(exists=True, dir_okay=False))
@click.option("--field", "fields", multiple=True, help="Compile only these fields, in this order.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Path to a custom config file.")
@click.option("--json", "json_output", is_flag=True, help="Output the rule set in JSON format.")
@click.option("--md", "md_output", is_flag=True, help="Output the rule set in Markdown format.")
def compile_definition(definition: str, fields: Tuple[str, ...], config_path: Optional[str], json_output: bool, md_output: bool) -> None:
    """Compile a form definition into its rules and messages.

    Field names default to the definition's `form.fields` list, or to its
    field tables when no list is given.
    """
    config_obj = Config(config_path=config_path)
    data = _load(definition)
    form_filter = FormFilter(config=config_obj)
    apply_definition(form_filter, data)
    rule_set = form_filter.compile(list(fields) or field_names(data))

    if json_output:
        console.print_json(json.dumps(rule_set.as_dict()))
    elif md_output:
        console.print(_format_rule_set_as_markdown(rule_set), markup=False)
    else:
        _display_rule_set(rule_set)


def _format_rule_set_as_markdown(rule_set: CompiledRuleSet) -> str:
    """Formats a compiled rule set as a Markdown document."""
    markdown = ""
    for field_name, rules in rule_set.rules.items():
        markdown += f"## `{field_name}`\n\n"
        markdown += "| Rule | Value | Message |\n|---|---|---|\n"
        messages = rule_set.messages.get(field_name, {})
        for rule, value in rules.items():
            markdown += f"| {rule} | {json.dumps(value)} | {messages.get(rule, '')} |\n"
        for rule in messages:
            if rule not in rules:
                markdown += f"| {rule} | | {messages[rule]} |\n"
        markdown += "\n"
    return markdown


def _display_rule_set(rule_set: CompiledRuleSet) -> None:
    """Displays a compiled rule set as a table."""
    table = Table(title="Compiled Rules")
    table.add_column("Field", style="cyan")
    table.add_column("Rule", style="magenta")
    table.add_column("Value")
    table.add_column("Message")
    for field_name, rules in rule_set.rules.items():
        messages = rule_set.messages.get(field_name, {})
        for rule, value in rules.items():
            table.add_row(field_name, rule, json.dumps(value), messages.get(rule, ""))
    console.print(table)


@main.command()
@click.argument("definition", type=click.Path(exists=True, dir_okay=False))
@click.argument("values", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Path to a custom config file.")
@click.option("--json", "json_output", is_flag=True, help="Output the errors in JSON format.")
def check(definition: str, values: str, config_path: Optional[str], json_output: bool) -> None:
    """Check submitted values against a form definition.

    VALUES is a JSON object of field name to submitted value. The command
    exits with a non-zero status code when any field is invalid.
    """
    config_obj = Config(config_path=config_path)
    data = _load(definition)
    try:
        with open(values, "r", encoding="utf-8") as f:
            submitted = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Could not read values from {values}: {e}[/red]")
        sys.exit(1)

    selector = data["form"].get("selector", DEFAULT_SELECTOR)
    metadata = field_metadata(data)
    document = build_form(selector, metadata, submitted)
    try:
        engine = create_engine(config_obj.get("engine", "memory"), document, config_obj)
    except EngineNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    form_filter = FormFilter(engine, config_obj)
    apply_definition(form_filter, data)
    validator = form_filter.init(selector, metadata)
    if validator is None:
        console.print(f"[red]No form matched '{selector}'.[/red]")
        sys.exit(1)
    valid = validator.form_valid()

    if json_output:
        console.print_json(json.dumps({"valid": valid, "errors": validator.errors}))
    else:
        _display_errors(selector, validator.errors)
    if not valid:
        sys.exit(1)


def _display_errors(selector: str, errors: Dict[str, str]) -> None:
    if not errors:
        console.print(Panel(f"All fields of {selector} are valid.", style="green", title="Check Complete"))
        return
    table = Table(title=f"Errors for {selector}")
    table.add_column("Field", style="cyan")
    table.add_column("Message")
    for field_name, message in errors.items():
        table.add_row(field_name, f"[red]{message}[/red]")
    console.print(table)
    console.print(Panel(f"Found {len(errors)} invalid field(s).", style="red", title="Check Complete"))


def _cast_value(value: str) -> Any:
    if value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    if value.isdigit():
        return int(value)
    return value


@main.command()
@click.argument("action", type=click.Choice(['get', 'set', 'list', 'reset']), required=True)
@click.argument("key", type=str, required=False)
@click.argument("value", type=str, required=False)
def config(action: str, key: Optional[str], value: Optional[str]) -> None:
    """Manage the formfilter configuration.

    \b
    ACTION:
        get <key>         Get a configuration value.
        set <key> <value> Set a configuration value.
        list              List all current configuration values.
        reset             Reset the configuration to its default state.
    """
    config_obj = Config()
    if action == "list":
        console.print(Panel(json.dumps(config_obj.config, indent=2), title="Current Configuration"))
    elif action == "get":
        if not key:
            console.print("[red]Error: 'get' action requires a key.[/red]")
            sys.exit(1)
        console.print(config_obj.get(key), markup=False)
    elif action == "set":
        if not key or value is None:
            console.print("[red]Error: 'set' action requires a key and a value.[/red]")
            sys.exit(1)
        processed_value = _cast_value(value)
        config_obj.set(key, processed_value)
        try:
            config_obj.save_user_config()
            console.print(f"[green]'{key}' set to '{processed_value}' and saved to user config.[/green]")
        except IOError as e:
            console.print(f"[red]Error saving configuration: {e}[/red]")
            sys.exit(1)
    elif action == "reset":
        if USER_CONFIG_PATH.exists():
            USER_CONFIG_PATH.unlink()
            console.print("[green]Configuration reset to defaults.[/green]")
        else:
            console.print("[yellow]No user configuration file to reset.[/yellow]")


main.add_alias('c', 'compile')

if __name__ == "__main__":
    main()
