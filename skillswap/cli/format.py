"""CLI output formatting and helpers."""

import json

import typer

from skillswap.models import DisplaySource, MatchResult, MergedView


def short_identity(identity: str) -> str:
    if len(identity) <= 10:
        return identity
    return f"{identity[:6]}...{identity[-4:]}"


def format_skill(text: str, source: DisplaySource) -> str:
    if source == DisplaySource.RAW:
        return f"{text[:10]}… (onchain hash)"
    return text


def format_view_row(view: MergedView) -> str:
    teach = format_skill(view.teach_display, view.teach_source)
    learn = format_skill(view.learn_display, view.learn_source)
    return (
        f"#{view.id} {view.display_name} ({short_identity(view.identity)}) "
        f"- teaches: {teach} | learning: {learn}"
    )


def format_contacts(view: MergedView) -> list[str]:
    return [f"{k}: {v}" for k, v in view.contacts.as_dict().items() if v]


def format_match_row(match: MatchResult) -> str:
    return f"{match.self_id} <-> {format_view_row(match.other)}"


def output_json(data, ctx: typer.Context):
    """Output data as JSON if requested. Returns True if output, False otherwise."""
    if ctx.obj.get("json_output"):
        typer.echo(json.dumps(data, indent=2))
        return True
    return False


def should_output(ctx: typer.Context) -> bool:
    """Check if output should be printed (not quiet mode)."""
    return not ctx.obj.get("quiet_output")


def echo_if_output(msg: str, ctx: typer.Context):
    """Echo message only if not in quiet mode."""
    if should_output(ctx):
        typer.echo(msg)
