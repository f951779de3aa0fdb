from __future__ import annotations
from pathlib import Path
from typing import List, Optional
import typer

from .bootstrap import build_app, DEFAULT_CONFIG
from .core.results import GenerationResult
from .engine import resolve_provider_order
from .providers.registry import ProviderRegistry

app = typer.Typer(add_completion=False, help="Blog-post generation with multi-provider fallback.")


def _emit(result: GenerationResult) -> None:
    if result.success:
        typer.echo(result.content)
        return
    typer.echo(f"Error: {result.error}", err=True)
    raise typer.Exit(code=1)


@app.command()
def generate(
    title: str = typer.Argument(..., help="Post title / topic"),
    category: str = typer.Option("", help="Optional category"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
    provider: Optional[str] = typer.Option(None, help="Preferred provider to try first"),
    config: Path = typer.Option(DEFAULT_CONFIG, help="Optional YAML config"),
):
    """Generate blog-post HTML for TITLE."""
    ctx = build_app(config)
    service = ctx["service"]
    try:
        _emit(service.generate_blog_content(title, category=category, tags=tag or [], preferred=provider))
    finally:
        service.engine.close()


@app.command()
def improve(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="HTML file to improve"),
    mode: str = typer.Option("enhance", help="expand | simplify | enhance"),
    config: Path = typer.Option(DEFAULT_CONFIG, help="Optional YAML config"),
):
    """Rewrite existing post content."""
    ctx = build_app(config)
    service = ctx["service"]
    try:
        _emit(service.improve_content(file.read_text(encoding="utf-8"), mode))
    finally:
        service.engine.close()


@app.command()
def providers(
    config: Path = typer.Option(DEFAULT_CONFIG, help="Optional YAML config"),
):
    """List providers in the order they would be tried."""
    ctx = build_app(config)
    settings = ctx["settings"]
    ctx["service"].engine.close()

    for key in resolve_provider_order(settings):
        descriptor = ProviderRegistry.find(key)
        if descriptor is None:
            typer.echo(f"{key:<12} (unknown provider)")
            continue
        status = "configured" if settings.has_credential(key) else f"missing {descriptor.credential_env}"
        model = settings.model(key, descriptor.adapter.default_model)
        typer.echo(f"{key:<12} {descriptor.display_name:<18} {model:<38} {status}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
