# ward_planner/cli/ward_cli.py
import asyncio
import typer
from typing import Any, Callable, Optional
from typing_extensions import Annotated

from .utils_cli import make_api_request, resolve_passphrase_hint
from ..errors import WardPlannerError
from ..sync.controller import SyncController
from ..sync.gateway import HttpWardGateway
from ..tenants.areas import AREA_CONFIGS, AreaId
from ..tenants.checklist import parse_checklist
from ..tenants.models import TenantDocument
from ..tenants.seed import load_seed_wards

app = typer.Typer(
    name="ward",
    help="Work with ward plans through the ward API.",
    no_args_is_help=True
)

PassphraseOption = Annotated[
    str,
    typer.Option(
        "--passphrase",
        prompt="Ward passphrase (or ward name)",
        hide_input=True,
        envvar="WARD_PLANNER_PASSPHRASE",
        help="Shared passphrase of the ward. A ward name is accepted and resolved locally.",
    )
]
AreaArgument = Annotated[
    AreaId,
    typer.Argument(help="Area of the plan.", case_sensitive=False)
]


def _run_with_controller(passphrase: str, action: Callable[[SyncController], Any]) -> Any:
    """
    Open a session for the ward, run `action`, flush pending saves and close.

    Exits with code 1 when authentication fails or the save did not reach the
    server.
    """
    from .config import WARD_PLANNER_CLI_API_BASE_URL

    async def _session() -> Any:
        gateway = HttpWardGateway(WARD_PLANNER_CLI_API_BASE_URL)
        controller = SyncController(gateway)
        try:
            await controller.select_tenant(resolve_passphrase_hint(passphrase, load_seed_wards()))
            outcome = action(controller)
            await controller.flush()
            session = controller.session
            if session is not None and not session.is_online:
                typer.secho(f"CLI: plan was not saved: {session.last_error}", fg=typer.colors.RED)
                raise typer.Exit(code=1)
            return outcome
        finally:
            await controller.logout()
            await gateway.aclose()

    try:
        return asyncio.run(_session())
    except WardPlannerError as e:
        typer.secho(f"CLI: {e.error_code}: {e.detail}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _print_document(name: str, document: TenantDocument) -> None:
    typer.secho(name, bold=True)
    for area_id in AreaId:
        area = document.area(area_id)
        percentage = document.completion_percentage(area_id)
        typer.secho(
            f"\n{AREA_CONFIGS[area_id].short_title} [{area_id.value}] - {len(area.items)} goal(s), {percentage:.0f}% done",
            fg=typer.colors.CYAN
        )
        for number, item in enumerate(area.items, start=1):
            mark = "x" if item.is_completed else " "
            when = f" ({item.when})" if item.when else ""
            typer.echo(f"  {number:02d}. [{mark}] {item.what or '(sin título)'}{when}  id={item.id}")
            if item.how:
                for step, line in enumerate(parse_checklist(item.how), start=1):
                    step_mark = "x" if line.checked else " "
                    typer.echo(f"        {step}. [{step_mark}] {line.text}")


@app.command("wards")
def list_wards():
    """List the wards known to the server."""
    make_api_request("GET", "/api/wards")


@app.command("login")
def login(passphrase: PassphraseOption):
    """Check a passphrase and print the ward it opens."""
    resolved = resolve_passphrase_hint(passphrase, load_seed_wards())
    data = make_api_request("POST", "/api/login", json_payload={"password": resolved}, echo_response=False)
    typer.secho(f"Authenticated as {data['wardName']} ({data['wardId']}).", fg=typer.colors.GREEN)


@app.command("show")
def show_ward(
    ward_id: Annotated[str, typer.Argument(help="The id of the ward to show.")]
):
    """Print a ward's plan with per-area progress."""
    data = make_api_request("GET", f"/api/ward/{ward_id}", echo_response=False)
    _print_document(data["name"], TenantDocument.model_validate(data.get("data")))


@app.command("examples")
def list_examples(area: AreaArgument):
    """Print the example goals of an area, usable with `add --example`."""
    config = AREA_CONFIGS[area]
    typer.secho(config.title, bold=True)
    if config.subtitle:
        typer.echo(config.subtitle)
    for number, example in enumerate(config.examples, start=1):
        typer.secho(f"\n{number}. {example.what}", fg=typer.colors.CYAN)
        typer.echo(f"   ¿Cuándo? {example.when}")
        for line in parse_checklist(example.how):
            typer.echo(f"   - {line.text}")


@app.command("add")
def add_goal(
    area: AreaArgument,
    passphrase: PassphraseOption,
    what: Annotated[Optional[str], typer.Option("--what", help="Goal description.")] = None,
    how: Annotated[Optional[str], typer.Option("--how", help="How, free text or checklist lines.")] = None,
    when: Annotated[Optional[str], typer.Option("--when", help="When, e.g. '12 de marzo de 2026'.")] = None,
    example: Annotated[
        Optional[int],
        typer.Option("--example", "-e", min=1, help="Start from example N of the area (see `ward examples`).")
    ] = None,
):
    """Append a goal to an area. Options given explicitly override the example's fields."""
    fields = {"what": "", "how": "", "when": ""}
    if example is not None:
        examples = AREA_CONFIGS[area].examples
        if example > len(examples):
            typer.secho(f"Area {area.value} has {len(examples)} example(s).", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        fields.update(examples[example - 1].model_dump())
    fields.update({k: v for k, v in {"what": what, "how": how, "when": when}.items() if v is not None})
    if not fields["what"]:
        fields["what"] = typer.prompt("What?")

    item_id = _run_with_controller(passphrase, lambda controller: controller.add_item(area.value, **fields))
    typer.secho(f"Goal {item_id} added to {area.value}.", fg=typer.colors.GREEN)


@app.command("edit")
def edit_goal(
    area: AreaArgument,
    item_id: Annotated[str, typer.Argument(help="Id of the goal to edit.")],
    passphrase: PassphraseOption,
    what: Annotated[Optional[str], typer.Option("--what")] = None,
    how: Annotated[Optional[str], typer.Option("--how")] = None,
    when: Annotated[Optional[str], typer.Option("--when")] = None,
):
    """Replace fields of a goal. Only provided fields change."""
    fields = {k: v for k, v in {"what": what, "how": how, "when": when}.items() if v is not None}
    if not fields:
        typer.echo("No update parameters provided. Nothing to do.")
        raise typer.Exit()
    updated = _run_with_controller(passphrase, lambda controller: controller.update_item(area.value, item_id, **fields))
    if updated is None:
        typer.secho(f"Goal {item_id} not found in {area.value}.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.secho(f"Goal {item_id} updated.", fg=typer.colors.GREEN)


@app.command("complete")
def toggle_goal(
    area: AreaArgument,
    item_id: Annotated[str, typer.Argument(help="Id of the goal to toggle.")],
    passphrase: PassphraseOption,
):
    """Toggle a goal between done and pending."""
    changed = _run_with_controller(passphrase, lambda controller: controller.toggle_completion(area.value, item_id))
    if not changed:
        typer.secho(
            f"Goal {item_id} was not changed (unknown id or checklist steps still pending).",
            fg=typer.colors.YELLOW
        )
        raise typer.Exit(code=1)
    typer.secho(f"Goal {item_id} toggled.", fg=typer.colors.GREEN)


@app.command("step")
def toggle_goal_step(
    area: AreaArgument,
    item_id: Annotated[str, typer.Argument(help="Id of the goal.")],
    step: Annotated[int, typer.Argument(min=1, help="Number of the checklist step, as printed by `show`.")],
    passphrase: PassphraseOption,
):
    """Check or uncheck one step of a goal's checklist."""
    checked = _run_with_controller(
        passphrase,
        lambda controller: controller.toggle_step(area.value, item_id, step - 1)
    )
    if checked is None:
        typer.secho(f"Goal {item_id} not found in {area.value}.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    state = "checked" if checked else "unchecked"
    typer.secho(f"Step {step} of goal {item_id} {state}.", fg=typer.colors.GREEN)


@app.command("remove")
def remove_goal(
    area: AreaArgument,
    item_id: Annotated[str, typer.Argument(help="Id of the goal to remove.")],
    passphrase: PassphraseOption,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt.")] = False,
):
    """Remove a goal. This cannot be undone."""
    if not yes:
        typer.confirm(f"Remove goal {item_id} from {area.value}?", abort=True)
    removed = _run_with_controller(passphrase, lambda controller: controller.delete_item(area.value, item_id))
    if removed is None:
        typer.secho(f"Goal {item_id} not found in {area.value}.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.secho(f"Goal {item_id} removed.", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
