"""Show how call names resolve in the signature table."""

import json

import click

from varaudit.config_runtime import LintConfig, load_runtime_config
from varaudit.lint.signatures import SignatureTable, build_configured_signatures
from varaudit.pipeline.ui import console, print_plain
from varaudit.utils.error_handler import handle_exceptions


def describe_signature(name: str, table: SignatureTable) -> dict:
    """Lookup result for one call name, wildcard method key included."""
    candidates = [name]
    if "::" in name and not name.startswith("?::"):
        candidates.append("?::" + name.split("::", 1)[1])
    sig = table.lookup(candidates)
    if sig is None:
        return {"name": name, "known": False}
    return {
        "name": name,
        "known": True,
        "matched": sig.name,
        "ref_positions": sorted(sig.ref_positions or ()),
        "does_not_initialize": sig.does_not_initialize,
    }


def format_description(info: dict) -> str:
    if not info["known"]:
        return f"{info['name']}: unknown, arguments are checked as reads"
    matched = "" if info["matched"] == info["name"] else f" (as {info['matched']})"
    if not info["ref_positions"]:
        return f"{info['name']}{matched}: no by-reference parameters"
    positions = ", ".join(str(p) for p in info["ref_positions"])
    kind = "must be initialized" if info["does_not_initialize"] else "initialized by the call"
    return f"{info['name']}{matched}: by-reference positions {positions}, {kind}"


@click.command("signatures")
@click.argument("names", nargs=-1, required=True)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file (default: .varaudit/config.json)")
@click.option("--init-by-reference", multiple=True, help="Extra 'name, pos, ...' entry (repeatable)")
@click.option("--signature", "signatures", multiple=True, help="Extra function prototype (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of text")
@handle_exceptions
def signatures(names, config_path, init_by_reference, signatures, as_json):
    """Print which arguments of the named functions are passed by reference.

    Names are looked up the way call sites are: `foo`, `Foo::bar`, or
    `?::bar` for a method of any class. Configured signatures override the
    builtin table of PHP internal functions.

    \b
    EXAMPLES:
      varaudit signatures preg_match sort
      varaudit signatures 'Db::fetch' --signature 'Db::fetch($sql, &$row)'
    """
    config = LintConfig.from_runtime(load_runtime_config(config_path=config_path))
    try:
        configured = build_configured_signatures(
            [*config.init_by_reference, *init_by_reference],
            [*config.function_signatures, *signatures],
        )
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    table = SignatureTable(configured=configured)
    results = [describe_signature(name, table) for name in names]

    if as_json:
        click.echo(json.dumps(results, indent=2))
        return
    for info in results:
        print_plain(console, format_description(info))
