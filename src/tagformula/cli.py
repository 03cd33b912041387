"""Command-line interface for tagformula."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import click
import httpx

from tagformula import __version__
from tagformula.autocomplete import Candidate
from tagformula.config import ConfigError, build_provider, load_bindings, load_config
from tagformula.controller import EditController
from tagformula.formulas import classify
from tagformula.logging import set_log_dir
from tagformula.tokens import TagToken, Token, token_text


@click.group()
@click.version_option(version=__version__, prog_name="tagformula")
def main() -> None:
    """tagformula -- type formulas with tag references and evaluate them."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _load(project_dir: str) -> dict[str, Any]:
    try:
        config = load_config(Path(project_dir))
    except ConfigError as e:
        raise click.ClickException(str(e))
    if config.get("logging_enabled"):
        set_log_dir(
            Path(project_dir),
            fsync=bool(config.get("logging_fsync")),
            tail_bytes=config.get("logging_tail_bytes"),
        )
    return config


def _describe(token: Token) -> str:
    text = token.label if isinstance(token, TagToken) else token_text(token)
    return f"{token.kind:<8} {text}"


async def _type_formula(
    text: str, config: dict[str, Any], bindings: dict[str, float], complete: bool
) -> EditController:
    """Feed *text* through a controller key by key, then submit."""
    timeout = config.get("suggest_timeout_secs")
    controller = EditController(
        provider=build_provider(config),
        bindings=bindings,
        tag_prefix=config["tag_prefix"],
        debounce=(config.get("suggest_debounce_ms") or 0) / 1000,
        timeout=float(timeout) if timeout is not None else None,
    )
    try:
        for ch in text:
            controller.handle_key(ch)
        if complete:
            await controller.wait_for_suggestions()
        controller.confirm()
    finally:
        await controller.autocomplete.aclose()
    return controller


project_dir_option = click.option(
    "--project-dir",
    default=".",
    type=click.Path(exists=True, file_okay=False),
    help="Directory holding tagformula.yaml.",
)


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("text")
@click.option("--bindings", "bindings_path", default=None, type=click.Path(exists=True, dir_okay=False), help="YAML or JSON file of label -> number.")
@click.option("--complete", is_flag=True, help="Accept the first suggestion for the trailing text.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@project_dir_option
def eval_cmd(text: str, bindings_path: str | None, complete: bool, as_json: bool, project_dir: str) -> None:
    """Type TEXT into a formula editor and print tokens and result."""
    config = _load(project_dir)
    bindings = config["bindings"]
    if bindings_path:
        try:
            bindings = load_bindings(Path(bindings_path))
        except ConfigError as e:
            raise click.ClickException(str(e))

    controller = asyncio.run(_type_formula(text, config, bindings, complete))

    if as_json:
        out = {"tokens": controller.export(), "result": controller.result}
        click.echo(json.dumps(out, indent=2))
        return
    for token in controller.tokens:
        click.echo(f"  {_describe(token)}")
    click.echo(f"Result: {controller.result}")


# ---------------------------------------------------------------------------
# Classify
# ---------------------------------------------------------------------------


@main.command("classify")
@click.argument("text")
@click.option("--tag-prefix", default="@", show_default=True, help="Tag reference marker.")
def classify_cmd(text: str, tag_prefix: str) -> None:
    """Show how TEXT would be committed as a token."""
    token = classify(text, tag_prefix)
    if token is None:
        click.echo("EMPTY")
        return
    click.echo(_describe(token))


# ---------------------------------------------------------------------------
# Suggest
# ---------------------------------------------------------------------------


@main.command("suggest")
@click.argument("query")
@project_dir_option
def suggest_cmd(query: str, project_dir: str) -> None:
    """List suggestion candidates for QUERY."""
    config = _load(project_dir)
    provider = build_provider(config)
    try:
        raw = asyncio.run(provider(query))
    except (httpx.HTTPError, ValueError) as e:
        raise click.ClickException(f"Suggestion lookup failed: {e}")

    candidates = [c for c in (Candidate.coerce(r) for r in raw) if c is not None]
    if not candidates:
        click.echo(f'No suggestions for "{query.strip()}"')
        return
    for c in candidates:
        click.echo(f"  {c.label}")
