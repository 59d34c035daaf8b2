# ward_planner/cli/main_cli.py
import typer
from . import ward_cli

# Main CLI application with help enabled when no arguments are provided
app = typer.Typer(
    name="ward-planner",
    help="Ward Planner Command Line Interface.",
    no_args_is_help=True
)

# Register ward commands under 'ward' subcommand
app.add_typer(ward_cli.app, name="ward")


@app.callback()
def main_callback():
    """
    Ward Planner main CLI application.
    Use 'ward-planner ward --help' for plan commands.
    """
    pass


def cli_entry_point():
    """Entry point function for console script registration in pyproject.toml"""
    app()


if __name__ == "__main__":
    cli_entry_point()
