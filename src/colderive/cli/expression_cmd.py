"""Expression CLI commands: list functions, evaluate an expression against an item."""

import click
import yaml

from colderive.errors import CompilationError, EvaluationError
from colderive.expressions import (
    NO_VALUE,
    FunctionCategory,
    build_function_table,
    compile_expression,
)
from colderive.repository.context import ItemContext
from colderive.repository.memory import MemoryItem

_extension_option = click.option(
    "--extension",
    "extensions",
    multiple=True,
    help="Extension module to make callable (repeatable).",
)


@click.command()
@click.option("--category", default=None, help="Only list one category (e.g. string, math).")
@_extension_option
def functions(category: str | None, extensions: tuple[str, ...]):
    """List the functions expressions can call."""
    table = build_function_table(extensions)
    for diagnostic in table.diagnostics:
        click.echo(click.style(diagnostic, fg="yellow"), err=True)

    categories = [c for c in FunctionCategory if category is None or c.value == category]
    if not categories:
        allowed = ", ".join(c.value for c in FunctionCategory)
        click.echo(f"Unknown category '{category}' (expected one of: {allowed})", err=True)
        raise SystemExit(1)

    for cat in categories:
        # Bare-name aliases of extension functions share a definition with the qualified name
        seen: set[str] = set()
        defs = []
        for func_def in table.functions.values():
            if func_def.category is cat and func_def.name not in seen:
                seen.add(func_def.name)
                defs.append(func_def)
        if not defs:
            continue

        click.echo(click.style(cat.value, bold=True))
        for func_def in sorted(defs, key=lambda d: d.name):
            params = ", ".join(
                f"{p.name}{'...' if p.variadic else ''}{'' if p.required else '?'}"
                for p in func_def.parameters
            )
            click.echo(f"  {func_def.name}({params})  {func_def.description}")


@click.command("eval")
@click.argument("expression")
@click.option(
    "--item",
    "item_text",
    default="{}",
    help="Item as a YAML/JSON mapping, e.g. '{Priority: 3, custom: {Owner: alice}}'.",
)
@_extension_option
def eval_cmd(expression: str, item_text: str, extensions: tuple[str, ...]):
    """Evaluate EXPRESSION against a single item."""
    try:
        data = yaml.safe_load(item_text) or {}
    except yaml.YAMLError as e:
        click.echo(click.style(f"Invalid --item: {e}", fg="red"), err=True)
        raise SystemExit(1)
    if not isinstance(data, dict):
        click.echo(click.style("--item must be a mapping", fg="red"), err=True)
        raise SystemExit(1)

    try:
        compiled = compile_expression(expression, list(extensions))
    except CompilationError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        raise SystemExit(1)

    try:
        result = compiled(ItemContext(MemoryItem.from_dict(data)))
    except EvaluationError as e:
        click.echo(click.style(f"Evaluation failed: {e}", fg="red"), err=True)
        raise SystemExit(1)

    if result is NO_VALUE:
        click.echo("novalue")
    else:
        click.echo(repr(result.value))
