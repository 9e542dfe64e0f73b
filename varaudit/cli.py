"""varaudit CLI - Main entry point and command registration hub."""
# ruff: noqa: E402 - Intentional lazy loading: commands imported after cli group definition

import click
from rich.table import Table

from varaudit import __version__
from varaudit.pipeline.ui import console


class VerboseGroup(click.Group):
    """Help screen listing the registered commands by category."""

    def format_commands(self, ctx, formatter):
        """Override to suppress default command listing (we use categorized format in format_help)."""
        pass

    COMMAND_CATEGORIES = {
        "ANALYSIS": {
            "title": "ANALYSIS",
            "description": "Detect reads of possibly-uninitialized variables",
            "commands": ["lint"],
        },
        "REFERENCE": {
            "title": "REFERENCE",
            "description": "Inspect the tables the analysis relies on",
            "commands": ["signatures"],
        },
    }

    def format_help(self, ctx, formatter):
        super().format_help(ctx, formatter)

        registered = {
            name: cmd
            for name, cmd in self.commands.items()
            if not getattr(cmd, "hidden", False)
        }

        console.print()
        console.rule("[bold]COMMANDS[/bold]")

        for category_data in self.COMMAND_CATEGORIES.values():
            console.print(f"\n[bold cyan]{category_data['title']}[/bold cyan]")
            console.print(f"[dim]{category_data['description']}[/dim]")

            table = Table(show_header=False, box=None, padding=(0, 2, 0, 0))
            table.add_column("Command", style="bold magenta", width=14)
            table.add_column("Description", style="white")

            for cmd_name in category_data["commands"]:
                if cmd_name not in registered:
                    continue
                first_line = (registered[cmd_name].help or "").split("\n")[0].strip()
                table.add_row(cmd_name, first_line.rstrip("."))

            console.print(table)

        console.print()
        console.print("For detailed options: varaudit <command> --help", highlight=False)


@click.group(cls=VerboseGroup)
@click.version_option(version=__version__, prog_name="varaudit")
@click.help_option("-h", "--help")
def cli():
    """varaudit - find possibly-uninitialized variables in PHP code.

    \b
    QUICK START:
      varaudit lint                   # Lint every *.php below .
      varaudit lint src -v            # Lint src/, print totals

    \b
    Logging: VARAUDIT_LOG_LEVEL=DEBUG, VARAUDIT_LOG_JSON=1
    """
    pass


from varaudit.commands.lint import lint
from varaudit.commands.signatures import signatures

cli.add_command(lint)
cli.add_command(signatures)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == "__main__":
    main()
