"""CLI entrypoint for cogen."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml

from cogen.core.config import AppConfig, load_config
from cogen.core.exceptions import CogenError, OrchestrationError
from cogen.core.models import Directive


def _setup_logging(config: Optional[AppConfig], verbose: bool = False) -> None:
    """Apply logging configuration from config/default.yaml."""
    if config is not None:
        level_name = config.logging.level
        fmt = config.logging.format
    else:
        level_name = "INFO"
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format=fmt, stream=sys.stderr)


def _load(ctx: click.Context) -> AppConfig:
    config = ctx.obj.get("config")
    if config is None:
        raise click.ClickException(ctx.obj.get("config_error") or "Configuration unavailable")
    return config


@click.group()
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose (DEBUG) logging.")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding default.yaml and environment overlays.",
)
@click.option("--env", default=None, help="Environment overlay name (e.g. test, production).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_dir: Optional[Path], env: Optional[str]) -> None:
    """cogen command line interface."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_dir"] = config_dir
    try:
        ctx.obj["config"] = load_config(config_dir=config_dir, env=env)
    except CogenError as exc:
        ctx.obj["config"] = None
        ctx.obj["config_error"] = str(exc)
    _setup_logging(ctx.obj["config"], verbose=verbose)


@cli.command("generate")
@click.option("--prompt", required=True, help="Directive prompt.")
@click.option("--mission", default="", help="Optional mission/context string.")
@click.option("--caller", default="cli", show_default=True, help="Caller identity for admission control.")
@click.option(
    "--offline",
    is_flag=True,
    default=False,
    help="Use the echo generator instead of the configured LLM.",
)
@click.option("--timeout", type=float, default=None, help="Seconds to wait for a result.")
@click.pass_context
def generate(
    ctx: click.Context,
    prompt: str,
    mission: str,
    caller: str,
    offline: bool,
    timeout: Optional[float],
) -> None:
    """Run one directive through the orchestrator and print the response."""
    from cogen.agents.scripted import EchoGenerator
    from cogen.core.factory import ComponentFactory

    config = _load(ctx)
    bundle = ComponentFactory.create(
        config=config,
        config_dir=ctx.obj["config_dir"],
        generator=EchoGenerator() if offline else None,
    )
    try:
        result = bundle.orchestrator.handle(caller, Directive(prompt=prompt, mission=mission), timeout=timeout)
    except OrchestrationError as exc:
        click.echo(json.dumps(exc.to_payload()), err=True)
        ctx.exit(2)
    finally:
        bundle.close()
    click.echo(json.dumps(result.to_response(), indent=2))


@cli.command("validate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def validate(ctx: click.Context, path: Path) -> None:
    """Run the validation sandbox over a file and print the verdict."""
    from cogen.sandbox.runner import ValidationSandbox

    config = _load(ctx)
    sandbox = ValidationSandbox.from_config(config.sandbox)
    try:
        verdict = sandbox.validate(path.read_text(encoding="utf-8"))
    except OrchestrationError as exc:
        raise click.ClickException(exc.kind.value) from exc

    payload: dict[str, Any] = {
        "accepted": verdict.accepted,
        "reason": verdict.reason.value if verdict.reason else None,
        "detail": verdict.detail,
        "duration_ms": round(verdict.duration_ms, 3),
    }
    click.echo(json.dumps(payload, indent=2))
    if not verdict.accepted:
        ctx.exit(1)


@cli.command("serve")
@click.option("--host", default=None, help="Bind address (default from config).")
@click.option("--port", type=int, default=None, help="Bind port (default from config).")
@click.option(
    "--offline",
    is_flag=True,
    default=False,
    help="Use the echo generator instead of the configured LLM.",
)
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int], offline: bool) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from cogen.agents.scripted import EchoGenerator
    from cogen.api.server import create_app
    from cogen.core.factory import ComponentFactory

    config = _load(ctx)
    bundle = ComponentFactory.create(
        config=config,
        config_dir=ctx.obj["config_dir"],
        generator=EchoGenerator() if offline else None,
    )
    app = create_app(
        bundle.orchestrator,
        caller_header=config.api.caller_header,
        on_shutdown=bundle.close,
    )
    uvicorn.run(app, host=host or config.api.host, port=port or config.api.port)


@cli.command("show-config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the effective configuration as YAML."""
    config = _load(ctx)
    click.echo(yaml.safe_dump(config.model_dump(), sort_keys=False))


def main() -> None:
    """Entry point used by `cogen` console script."""
    from dotenv import load_dotenv
    load_dotenv(Path(__file__).parent.parent / ".env", override=False)
    cli()


if __name__ == "__main__":
    main()
