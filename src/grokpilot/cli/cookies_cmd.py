"""CLI commands for checking credentials and first-time setup."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from grokpilot.cli.output import console, print_banner


def cookies(
    domain: str = typer.Option("grok.com", "--domain", help="Cookie domain to look for."),
    cookie_path: Optional[Path] = typer.Option(None, "--cookie-path", help="Explicit Chrome Cookies SQLite DB."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging to stderr."),
) -> None:
    """Test reading cookies from the local Chrome profile."""
    from grokpilot.cli.log import configure_logging
    from grokpilot.cookies.chrome import ChromeCookieReader, default_cookie_paths
    from grokpilot.settings import get_settings

    configure_logging(verbose)
    settings = get_settings()
    paths = [cookie_path] if cookie_path else default_cookie_paths()
    console.print(f"\n[dim]  Looking for cookies for domain: {domain}[/dim]")
    console.print(f"[dim]  Checking {len(paths)} profile location(s)...[/dim]\n")

    reader = ChromeCookieReader(keychain_timeout=settings.cookies.keychain_timeout_sec)
    found = False
    for path in paths:
        if not path.is_file():
            console.print(f"[dim]  ✗ {escape(str(path))}[/dim]")
            continue
        console.print(f"[dim]  ✓ Found: {escape(str(path))}[/dim]")
        creds = reader.read(path, domain)
        if creds:
            found = True
            console.print(f"[green]    → {len(creds)} cookies for {domain}:[/green]")
            for c in creds:
                console.print(f"[dim]      {escape(c.name)} ({escape(c.domain or '')})[/dim]")
        else:
            console.print("[yellow]    → No cookies found (may be encrypted or not logged in)[/yellow]")

    if not found:
        console.print("\n[yellow]  No cookies found. Options:[/yellow]")
        console.print("[dim]    1. Log in to grok.com in Chrome first[/dim]")
        console.print(f"[dim]    2. Export cookies to {settings.home_dir / 'cookies.json'}[/dim]")
        console.print("[dim]    3. Use --manual-login to log in via the automation browser[/dim]")


def init() -> None:
    """Check Chrome, cookies and the grokpilot home directory."""
    from grokpilot.cookies.chrome import default_cookie_paths
    from grokpilot.cookies.payload import AUTO_COOKIE_FILES
    from grokpilot.settings import get_settings

    print_banner()
    console.print("[bold]  Setup Check[/bold]\n")

    profiles = [p for p in default_cookie_paths() if p.is_file()]
    if profiles:
        console.print(f"[green]  ✓[/green] Chrome profile found: {escape(str(profiles[0]))}")
    else:
        console.print("[yellow]  ✗ No Chrome profile found[/yellow]")
        console.print("[dim]    Install Chrome and log in to grok.com[/dim]")

    home = get_settings().home_dir
    if home.is_dir():
        console.print(f"[green]  ✓[/green] {escape(str(home))} exists")
    else:
        home.mkdir(parents=True, exist_ok=True)
        console.print(f"[green]  ✓[/green] Created {escape(str(home))}")

    existing = [home / name for name in AUTO_COOKIE_FILES if (home / name).is_file()]
    if existing:
        console.print(f"[green]  ✓[/green] {escape(str(existing[0]))} exists")
    else:
        console.print(f"[dim]  ℹ No {escape(str(home / 'cookies.json'))} — optional: export cookies here[/dim]")

    console.print("\n[bold]  Quick Start[/bold]\n")
    console.print("[dim]  Option 1 — Use the existing Chrome session (cookies read from the profile):[/dim]")
    console.print('    grokpilot ask -p "explain this function" --file src/app.py\n')
    console.print("[dim]  Option 2 — Manual login (persistent browser profile):[/dim]")
    console.print('    grokpilot ask -p "explain this function" --manual-login --file src/app.py\n')
    console.print("[dim]  Option 3 — Export cookies to cookies.json in the home directory, then:[/dim]")
    console.print('    grokpilot ask -p "explain this function" --file src/app.py\n')
    console.print("[dim]  Option 4 — Dry run (print the bundle and paste it manually):[/dim]")
    console.print('    grokpilot ask -p "explain this function" --file src/app.py --dry-run\n')
