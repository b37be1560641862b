import asyncio
import logging

import typer

from skillswap import config
from skillswap.core.engine import Engine
from skillswap.errors import NotFound, SkillSwapError, ValidationError
from skillswap.sources import SnapshotRecordSource

from .format import (
    echo_if_output,
    format_contacts,
    format_match_row,
    format_view_row,
    output_json,
    should_output,
)

app = typer.Typer(no_args_is_help=True, add_completion=False)


@app.callback()
def common_options_callback(
    ctx: typer.Context,
    identity: str = typer.Option(None, "--as", help="Wallet identity of the local participant."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format."),
    quiet_output: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
):
    """SkillSwap profiles and complementary-skill matches."""
    cfg = config.load_config()
    logging.basicConfig(
        level=str(cfg.get("log_level") or "INFO").upper(),
        format="[skillswap] %(levelname)s %(message)s",
    )

    ctx.obj = ctx.obj or {}
    ctx.obj["identity"] = identity or cfg.get("local_identity")
    ctx.obj["json_output"] = json_output
    ctx.obj["quiet_output"] = quiet_output


def _engine(ctx: typer.Context) -> Engine:
    source = SnapshotRecordSource.load(config.snapshot_file())
    return Engine.from_config(source, local_identity=ctx.obj.get("identity"))


def _run(ctx: typer.Context, operation):
    async def runner():
        async with _engine(ctx) as engine:
            return await operation(engine)

    try:
        return asyncio.run(runner())
    except (NotFound, ValidationError) as e:
        output_json({"status": "error", "message": str(e)}, ctx) or echo_if_output(f"❌ {e}", ctx)
        raise typer.Exit(code=1) from e
    except SkillSwapError as e:
        output_json({"status": "error", "message": str(e)}, ctx) or echo_if_output(
            f"❌ Data currently unavailable: {e}", ctx
        )
        raise typer.Exit(code=1) from e


@app.command("init")
def init_cmd(ctx: typer.Context):
    """Create ~/.skillswap/config.yaml from defaults."""
    path = config.init_config()
    output_json({"status": "success", "config": str(path)}, ctx) or echo_if_output(
        f"Config: {path}", ctx
    )


@app.command("list")
def list_cmd(ctx: typer.Context):
    """List every participant with readable skills where available."""

    async def operation(engine: Engine):
        if engine.is_stale:
            raise SkillSwapError(str(engine.last_error))
        return engine.list_merged_views()

    views = _run(ctx, operation)
    if output_json([v.as_dict() for v in views], ctx):
        return
    if not views:
        echo_if_output("No users yet", ctx)
        return
    if not should_output(ctx):
        return

    echo_if_output(f"PARTICIPANTS ({len(views)}):", ctx)
    for view in views:
        echo_if_output(f"  {format_view_row(view)}", ctx)


@app.command("show")
def show_cmd(
    ctx: typer.Context,
    participant_id: int = typer.Argument(..., help="Participant id"),
):
    """Show one participant's merged profile."""

    async def operation(engine: Engine):
        return engine.get_merged_view(participant_id)

    view = _run(ctx, operation)
    if output_json(view.as_dict(), ctx):
        return

    echo_if_output(format_view_row(view), ctx)
    if view.bio:
        echo_if_output(f"  bio: {view.bio}", ctx)
    for line in format_contacts(view):
        echo_if_output(f"  {line}", ctx)


@app.command("matches")
def matches_cmd(
    ctx: typer.Context,
    participant_id: int = typer.Argument(..., help="Participant id"),
    persisted: bool = typer.Option(
        False, "--persisted", help="Show matches recorded on the ledger instead of a preview."
    ),
):
    """Find participants whose skills mirror this participant's."""

    async def operation(engine: Engine):
        if persisted:
            return await engine.persisted_matches_for(participant_id)
        return await engine.find_matches_for(participant_id)

    matches = _run(ctx, operation)
    if output_json(
        [{"pair": list(m.pair), "other": m.other.as_dict()} for m in matches],
        ctx,
    ):
        return
    if not matches:
        echo_if_output("No matches found", ctx)
        return

    echo_if_output(f"MATCHES ({len(matches)}):", ctx)
    for match in matches:
        echo_if_output(f"  {format_match_row(match)}", ctx)


@app.command("annotate")
def annotate_cmd(
    ctx: typer.Context,
    teach: str = typer.Option(None, "--teach", help="Readable text of the skill you teach."),
    learn: str = typer.Option(None, "--learn", help="Readable text of the skill you learn."),
):
    """Remember readable text for your own skills on this machine."""
    identity = ctx.obj.get("identity")
    if not identity:
        typer.echo("Error: --as <identity> required", err=True)
        raise typer.Exit(1)
    if not teach and not learn:
        typer.echo("Error: --teach or --learn required", err=True)
        raise typer.Exit(1)

    async def operation(engine: Engine):
        engine.record_own_annotation(identity, teach_text=teach, learn_text=learn)
        await engine.coalescer.drain()
        return engine.self_view

    view = _run(ctx, operation)
    if output_json({"status": "success", "view": view.as_dict() if view else None}, ctx):
        return
    if view is None:
        echo_if_output(f"Saved annotation for {identity} (not registered in snapshot)", ctx)
        return
    echo_if_output(f"Saved: {format_view_row(view)}", ctx)
