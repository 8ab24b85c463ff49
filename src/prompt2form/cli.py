"""CLI entry point for prompt2form."""

import json
import sys
from pathlib import Path

import click

from prompt2form.config import settings
from prompt2form.errors import LLMError, Prompt2FormError
from prompt2form.schemas.result import GenerationResult
from prompt2form.service import FormAIService
from prompt2form.utils.logging_setup import setup_logging


def _emit(result: GenerationResult) -> None:
    """Print a result as JSON; exit non-zero on failure."""
    click.echo(result.model_dump_json(indent=2, exclude_none=True))
    if not result.ok:
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0", prog_name="prompt2form")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option(
    "--memory",
    is_flag=True,
    help=(
        "Keep sessions in process memory instead of Redis. Sessions are lost when "
        "the command exits, so refine, show-session and save --session-id cannot "
        "see sessions from earlier commands."
    ),
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, memory: bool):
    """prompt2form - Generate form schemas from natural-language prompts."""
    if verbose:
        settings.log_level = "DEBUG"
    if memory:
        settings.session_backend = "memory"
    setup_logging()

    # Tests inject a ready service through ctx.obj
    if ctx.obj is None:
        service = FormAIService.from_settings(settings)
        try:
            service.open()
        except (Prompt2FormError, LLMError) as e:
            raise click.ClickException(f"Failed to start service: {e}") from e
        ctx.call_on_close(service.close)
        ctx.obj = service


@main.command()
@click.argument("prompt")
@click.option("--session-id", "-s", help="Continue an existing session")
@click.pass_obj
def generate(service: FormAIService, prompt: str, session_id: str | None):
    """Generate a form schema from PROMPT."""
    _emit(service.generate_schema(prompt, session_id))


@main.command()
@click.argument("session_id")
@click.argument("prompt")
@click.pass_obj
def refine(service: FormAIService, session_id: str, prompt: str):
    """Refine the unsaved schema of SESSION_ID with PROMPT."""
    _emit(service.refine_session(session_id, prompt))


@main.command()
@click.argument("form_id")
@click.argument("prompt")
@click.option("--owner", "-o", help="Only amend the form if it belongs to this owner")
@click.pass_obj
def amend(service: FormAIService, form_id: str, prompt: str, owner: str | None):
    """Start a new session refining saved form FORM_ID with PROMPT."""
    _emit(service.amend_from_form(form_id, prompt, owner=owner))


@main.command("show-session")
@click.argument("session_id")
@click.pass_obj
def show_session(service: FormAIService, session_id: str):
    """Show the latest schema of an unsaved session."""
    _emit(service.get_session_schema(session_id))


@main.command()
@click.option("--title", "-t", required=True, help="Form title")
@click.option("--owner", "-o", required=True, help="Owner user id")
@click.option("--description", "-d", help="Form description")
@click.option("--session-id", "-s", help="Session whose latest schema is saved (and then cleared)")
@click.option(
    "--schema-file",
    "-f",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with the fields to save",
)
@click.pass_obj
def save(
    service: FormAIService,
    title: str,
    owner: str,
    description: str | None,
    session_id: str | None,
    schema_file: Path | None,
):
    """Save a form from a session or a schema file."""
    if schema_file is not None:
        try:
            fields = json.loads(schema_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Invalid JSON: {e.msg}", param_hint="--schema-file") from e
    elif session_id:
        current = service.get_session_schema(session_id)
        if not current.ok:
            _emit(current)
            return
        fields = current.fields
    else:
        raise click.UsageError("Provide --session-id or --schema-file")

    _emit(
        service.save_form(
            title=title,
            fields=fields,
            owner=owner,
            description=description,
            session_id=session_id,
        )
    )


@main.command()
@click.option("--owner", "-o", required=True, help="Owner user id")
@click.pass_obj
def forms(service: FormAIService, owner: str):
    """List saved forms of an owner."""
    try:
        found = service.list_forms(owner)
    except Prompt2FormError as e:
        raise click.ClickException(str(e)) from e
    if not found:
        click.echo("No forms found.")
        return
    for form in found:
        click.echo(f"{form.form_id}  {form.title}  ({len(form.fields)} fields)")


if __name__ == "__main__":
    main()
