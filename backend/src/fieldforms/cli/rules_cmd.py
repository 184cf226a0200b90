"""Rules CLI commands: check rule syntax, list grammar functions."""

import click

from fieldforms.validation.rules import (
    Block,
    Call,
    Entity,
    FunctionCategory,
    FunctionRegistry,
    LexerError,
    Operator,
    ParseError,
    parse_rule,
)


def _describe(entities: list[Entity], depth: int = 0) -> list[str]:
    lines = []
    indent = "  " * depth
    for entity in entities:
        if isinstance(entity, Block):
            lines.append(f"{indent}block")
            lines.extend(_describe(entity.sub, depth + 1))
        elif isinstance(entity, Call):
            args = ", ".join(repr(arg) for arg in entity.func_args)
            lines.append(f"{indent}call {entity.func_name}({args})")
        elif isinstance(entity, Operator):
            lines.append(f"{indent}op {entity.operator}")
    return lines


@click.group()
def rules():
    """Rule grammar commands."""
    pass


@rules.command()
@click.argument("rule")
def check(rule: str):
    """Parse RULE and print its entity tree."""
    try:
        entities = parse_rule(rule)
    except (LexerError, ParseError) as e:
        click.echo(click.style(f"Invalid rule: {e}", fg="red"), err=True)
        raise SystemExit(1)

    unknown = []
    for entity in entities:
        if isinstance(entity, Block):
            unknown.extend(
                call.func_name
                for call in entity.calls()
                if not FunctionRegistry.is_registered(call.func_name)
            )

    for line in _describe(entities):
        click.echo(line)

    if unknown:
        click.echo(
            click.style(f"Unknown function(s): {', '.join(unknown)}", fg="red"),
            err=True,
        )
        raise SystemExit(1)


@rules.command("functions")
@click.option(
    "--category",
    type=click.Choice([c.value for c in FunctionCategory]),
    default=None,
    help="Only list functions in this category.",
)
def functions_cmd(category: str | None):
    """List the functions available in rules."""
    if category:
        definitions = FunctionRegistry.list_by_category(FunctionCategory(category))
    else:
        definitions = FunctionRegistry.list_all()

    for definition in sorted(definitions, key=lambda d: d.name.lower()):
        params = ", ".join(p.name + ("..." if p.variadic else "") for p in definition.parameters)
        click.echo(f"{definition.name}({params})  [{definition.category.value}]")
        click.echo(f"    {definition.description}")
