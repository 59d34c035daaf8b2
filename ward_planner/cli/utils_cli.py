# ward_planner/cli/utils_cli.py
import requests
import typer
import json
import unicodedata
from typing import Any, Dict, Iterable, List, Optional, Union

from ..tenants.models import TenantSeed


def make_api_request(
    method: str,
    endpoint: str,
    json_payload: Optional[Dict[str, Any]] = None,
    expected_status: Union[int, List[int]] = 200,
    echo_response: bool = True
) -> Any:
    """
    Makes an HTTP request against the ward API and returns the decoded JSON.

    Any unexpected status or connection problem is reported in red and ends
    the command with exit code 1.
    """
    from .config import WARD_PLANNER_CLI_API_BASE_URL

    full_url = f"{WARD_PLANNER_CLI_API_BASE_URL}{endpoint}"
    typer.echo(f"CLI: {method.upper()} {full_url}")

    try:
        response = requests.request(method, full_url, json=json_payload, timeout=30)
    except requests.exceptions.ConnectionError as e:
        typer.secho(
            f"CLI: Connection Error - Could not connect to API at {full_url}. Is the server running? Error: {e}",
            fg=typer.colors.RED
        )
        raise typer.Exit(code=1)
    except requests.exceptions.RequestException as e:
        typer.secho(f"CLI: Request Error - {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    expected_statuses = [expected_status] if isinstance(expected_status, int) else expected_status
    if response.status_code not in expected_statuses:
        err_msg = f"CLI: API Error - Expected status {expected_status}, got {response.status_code}."
        try:
            err_data = response.json()
            err_msg += f" {err_data.get('error', '')}: {err_data.get('detail', response.text)}"
        except json.JSONDecodeError:
            err_msg += f" Raw response: {response.text}"
        typer.secho(err_msg, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    try:
        data = response.json()
    except json.JSONDecodeError:
        typer.secho(f"CLI: Error - Could not decode JSON response. Raw text: {response.text}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if echo_response:
        typer.echo(typer.style("CLI: Response JSON:", fg=typer.colors.CYAN))
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
    return data


def normalize_hint(value: str) -> str:
    """Lowercase, trim and strip accents: 'Jardínes ' -> 'jardines'."""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower().strip()


def resolve_passphrase_hint(value: str, seeds: Iterable[TenantSeed]) -> str:
    """
    Turn what a user typed into the literal passphrase to submit.

    Accent- and case-insensitive match against a configured passphrase, or a
    partial match (more than four characters) against a ward name. Without a
    match the input is submitted unchanged; the server still compares exactly.
    """
    cleaned = normalize_hint(value)
    for seed in seeds:
        passphrase = seed.effective_passphrase
        if cleaned == normalize_hint(passphrase):
            return passphrase
        if len(cleaned) > 4 and cleaned in normalize_hint(seed.name):
            return passphrase
    return value
