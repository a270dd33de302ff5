"""
Mockup Studio — compose a product or logo onto a template, optionally refine with Gemini.

Usage:
  mockup-studio --list
  mockup-studio --template desk-wood-1 --foreground product.png
  mockup-studio --template printable-mug-1 --foreground logo.png --scale 0.35 --y 0.45
  mockup-studio --template desk-wood-1 --foreground product.png --generate --preset luxury
  mockup-studio --template desk-wood-1 --foreground product.png --generate --caption
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from .config import Settings
from .errors import MockupStudioError
from .prompts import MAX_USER_PROMPT_CHARS, STYLE_PRESETS
from .session import EditSession
from .templates import TemplateRegistry

console = Console()

OUTPUTS_ROOT = Path("outputs")


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mockup Studio — product / logo mockups with mask-guided AI refinement"
    )
    parser.add_argument("--list", action="store_true", help="List available templates and exit")
    parser.add_argument("--template", help="Template id (see --list)")
    parser.add_argument("--foreground", help="Product photo or logo (path or URL)")
    parser.add_argument("--x", type=float, default=None, help="Centre x, 0–1 (default: template default)")
    parser.add_argument("--y", type=float, default=None, help="Centre y, 0–1 (default: template default)")
    parser.add_argument("--scale", type=float, default=None, help="Width as a fraction of canvas, 0–1")
    parser.add_argument(
        "--output",
        default=None,
        help="Output directory (default: outputs/<timestamp>)",
    )
    parser.add_argument("--generate", action="store_true", help="Refine the composite with Gemini")
    parser.add_argument("--preset", choices=sorted(STYLE_PRESETS), default=None, help="Style preset")
    parser.add_argument(
        "--prompt",
        default=None,
        help=f"Extra edit instruction (max {MAX_USER_PROMPT_CHARS} chars)",
    )
    parser.add_argument("--caption", action="store_true", help="Also suggest a social caption")
    args = parser.parse_args(argv)
    if not args.list and not (args.template and args.foreground):
        parser.error("--template and --foreground are required (or use --list)")
    return args


def _list_templates(registry: TemplateRegistry) -> None:
    table = Table(title="Templates", show_lines=False)
    table.add_column("id", style="bold")
    table.add_column("mode")
    table.add_column("category")
    table.add_column("name")
    for t in registry:
        table.add_row(t.id, t.mode, t.category or "", t.name)
    console.print(table)


def _check_env(settings: Settings) -> None:
    """Check required environment variables."""
    if not settings.gemini_api_key:
        console.print("[bold red]Error:[/bold red] GEMINI_API_KEY not set.")
        console.print("Create a .env file from .env.example and add your keys.")
        sys.exit(1)


# ── Main ──────────────────────────────────────────────────────────────────────

async def run(args: argparse.Namespace, settings: Settings) -> Path:
    start = time.time()
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(args.output) if args.output else OUTPUTS_ROOT / timestamp
    output_dir.mkdir(parents=True, exist_ok=True)

    session = EditSession(settings=settings)

    console.print(Rule("[bold magenta]Mockup Studio[/bold magenta]"))
    console.print(
        f"  Template: [bold]{args.template}[/bold]  |  "
        f"Foreground: [bold]{args.foreground}[/bold]  |  "
        f"Output: [bold]{output_dir}[/bold]"
    )

    # ── Step 1: Load assets ───────────────────────────────────────────────────
    console.print("\n[bold]Step 1 — Loading assets[/bold]")
    assets, _ = await asyncio.gather(
        session.select_template(args.template),
        session.set_foreground(args.foreground),
    )
    missing = [role for role in ("overlay", "silhouette_mask") if getattr(assets, role) is None]
    console.print(
        f"  [green]✓[/green] {assets.template.mode} template "
        f"({assets.background.width}×{assets.background.height})"
        + (f"  [dim](missing: {', '.join(missing)})[/dim]" if missing else "")
    )

    p = session.placement
    session.set_placement(
        p.x if args.x is None else args.x,
        p.y if args.y is None else args.y,
        p.scale if args.scale is None else args.scale,
    )

    # ── Step 2: Composite + mask ──────────────────────────────────────────────
    console.print("\n[bold]Step 2 — Compositing (Pillow)[/bold]")
    result = session.preview()
    composite_path = output_dir / "composite.png"
    mask_path = output_dir / "mask.png"
    composite_path.write_bytes(result.image.to_png())
    mask_path.write_bytes(result.mask.to_png())
    p, r = session.placement, result.rect
    console.print(
        f"  [green]✓[/green] {result.size[0]}×{result.size[1]}  "
        f"placement x={p.x:.3f} y={p.y:.3f} scale={p.scale:.3f}  rect=({r.x}, {r.y}, {r.width}, {r.height})"
    )

    # ── Step 3: Generate ──────────────────────────────────────────────────────
    if args.generate:
        console.print("\n[bold]Step 3 — Refining with Gemini[/bold]")
        t0 = time.time()
        image = await session.generate(preset=args.preset, user_prompt=args.prompt)
        result_path = output_dir / "result.png"
        result_path.write_bytes(image.data)
        console.print(f"  [green]✓ Done in {time.time() - t0:.1f}s[/green] → {result_path}")

        await session.wait_for_uploads()
        if image.url:
            console.print(f"  [dim]Durable copy: {image.url}[/dim]")

        if args.caption:
            caption = await session.suggest_caption(notes=args.prompt or "")
            console.print(Panel(
                f"{caption.caption}\n\n[dim]{' '.join('#' + h for h in caption.hashtags)}[/dim]",
                title="Caption",
                border_style="cyan",
            ))
    else:
        console.print("\n  [dim]Generation skipped (no --generate)[/dim]")

    console.print(
        Panel(
            f"Outputs saved to: [bold]{output_dir}[/bold] in [bold]{time.time() - start:.0f}s[/bold]",
            title="[bold green]Complete[/bold green]",
            border_style="green",
        )
    )
    return output_dir


def main(argv=None) -> None:
    logging.basicConfig(
        format="%(asctime)s — %(levelname)s — %(name)s — %(message)s",
        level=logging.WARNING,
    )
    args = parse_args(argv)
    settings = Settings.from_env()

    if args.list:
        _list_templates(TemplateRegistry.from_settings(settings.templates_path))
        return
    if args.generate:
        _check_env(settings)

    try:
        asyncio.run(run(args, settings))
    except MockupStudioError as e:
        logging.getLogger(__name__).debug("aborted", exc_info=True)
        console.print(f"[bold red]Error:[/bold red] {e.user_message}  [dim]({e})[/dim]")
        sys.exit(1)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
