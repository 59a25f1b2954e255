"""CLI command for asking Grok a question."""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

import typer
from rich.markup import escape

from grokpilot.cli.log import configure_logging
from grokpilot.cli.output import (
    console,
    copy_to_clipboard,
    print_answer,
    print_banner,
    print_bundle,
    print_bundle_info,
    write_output_file,
)


def ask(
    prompt: Optional[str] = typer.Option(None, "--prompt", "-p", help="Question to ask Grok (or pipe it via stdin)."),
    files: Optional[list[str]] = typer.Option(
        None, "--file", "-f", help="File or glob pattern to include; prefix with ! to exclude. Repeatable."
    ),
    model: str = typer.Option("grok-3", "--model", "-m", help="Grok model label recorded with the session."),
    copy: bool = typer.Option(
        False, "--copy", help="Copy the bundle to the clipboard (and the answer, after a run)."
    ),
    render: bool = typer.Option(False, "--render", help="Print the assembled bundle."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Build and print the bundle without opening a browser."),
    keep_browser: bool = typer.Option(False, "--keep-browser", help="Leave Chrome running after the run."),
    headless: Optional[bool] = typer.Option(None, "--headless/--headed", help="Run Chrome without a window."),
    chrome_path: Optional[str] = typer.Option(None, "--chrome-path", help="Path to the Chrome binary."),
    chrome_profile: Optional[str] = typer.Option(None, "--chrome-profile", help="Chrome user-data-dir to use."),
    cookie_path: Optional[str] = typer.Option(None, "--cookie-path", help="Explicit Chrome Cookies SQLite DB."),
    inline_cookies: Optional[str] = typer.Option(
        None, "--inline-cookies", help="Cookie JSON array (or base64 of it)."
    ),
    inline_cookies_file: Optional[str] = typer.Option(
        None, "--inline-cookies-file", help="File holding a cookie JSON array (or base64 of it)."
    ),
    grok_url: Optional[str] = typer.Option(None, "--grok-url", help="Target URL (default: settings browser.url)."),
    browser_timeout: Optional[int] = typer.Option(
        None, "--browser-timeout", min=1, help="Overall browser session timeout in ms."
    ),
    response_timeout: Optional[int] = typer.Option(
        None, "--response-timeout", min=1, help="Response capture timeout in ms."
    ),
    manual_login: bool = typer.Option(
        False, "--manual-login", help="Open a persistent-profile browser and wait for you to sign in."
    ),
    remote_chrome: Optional[str] = typer.Option(
        None, "--remote-chrome", help="Attach to a running Chrome at host:port (e.g. localhost:9222)."
    ),
    write_output: Optional[str] = typer.Option(None, "--write-output", help="Also write the answer to this file."),
    think: bool = typer.Option(False, "--think", help="Enable Think mode."),
    deep_search: bool = typer.Option(False, "--deep-search", help="Enable DeepSearch mode."),
    imagine: Optional[str] = typer.Option(None, "--imagine", help="Generate an image and save it to this path."),
    read_aloud: Optional[str] = typer.Option(
        None, "--read-aloud", help="Read the answer aloud in Chrome and save a transcript here."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging to stderr."),
) -> None:
    """Bundle a prompt with files and ask Grok through the browser."""
    from grokpilot.bundle import build_bundle
    from grokpilot.engine import run_grok
    from grokpilot.exceptions import CaptureTimeout, GrokPilotError
    from grokpilot.models.run import RunOptions, SessionRecord, SessionStatus
    from grokpilot.settings import get_settings
    from grokpilot.store import build_session_store, generate_id

    if not prompt and not sys.stdin.isatty():
        prompt = sys.stdin.read().strip()
    if not prompt:
        console.print("[red]Error:[/red] --prompt (-p) is required or pipe text via stdin.")
        console.print('[dim]  Example: grokpilot ask -p "explain this code" --file src/app.py[/dim]')
        raise typer.Exit(code=1)

    try:
        settings = get_settings()
    except ValueError as e:
        console.print(f"[red]✗[/red] Settings failed to load: {escape(str(e))}")
        raise typer.Exit(code=1) from None
    configure_logging(verbose or settings.verbose)

    options = RunOptions(
        prompt=prompt,
        files=files or [],
        model=model,
        url=grok_url,
        remote_chrome=remote_chrome,
        chrome_path=chrome_path,
        chrome_profile=chrome_profile,
        headless=headless,
        manual_login=manual_login,
        keep_browser=keep_browser,
        cookie_path=cookie_path,
        inline_cookies=inline_cookies,
        inline_cookies_file=inline_cookies_file,
        think=think,
        deep_search=deep_search,
        imagine=imagine,
        read_aloud=read_aloud,
        browser_timeout_ms=browser_timeout,
        response_timeout_ms=response_timeout,
        verbose=verbose,
    )

    print_banner()
    console.print("[dim]  Building bundle...[/dim]")
    bundle = build_bundle(prompt, options.files)
    print_bundle_info(bundle.file_count, bundle.char_count, bundle.skipped_files)

    modes = options.active_modes()
    if modes:
        console.print(f"[cyan]  Modes: {escape(', '.join(modes))}[/cyan]")

    if render or dry_run:
        print_bundle(bundle.text)
    if copy or dry_run:
        if copy_to_clipboard(bundle.text):
            console.print("[green]  ✓ Bundle copied to clipboard — paste into grok.com[/green]")
        else:
            console.print("[yellow]  Could not access clipboard[/yellow]")
    if dry_run:
        console.print("[dim]  Dry run: skipping browser launch.[/dim]")
        return

    store = build_session_store(settings.sessions_dir)
    session_id = generate_id()
    store.save_bundle(session_id, bundle.text)
    store.save(
        SessionRecord(
            id=session_id,
            prompt=prompt,
            files=options.files,
            model=model,
            options={
                "url": options.url or settings.browser.url,
                "model": model,
                "keep_browser": keep_browser,
                "headless": headless,
                "manual_login": manual_login,
                "modes": modes,
            },
        )
    )
    console.print(f"[dim]  Session: {session_id}[/dim]\n")

    def on_progress(msg: str) -> None:
        if not verbose:
            console.print(f"[dim]  {escape(msg)}[/dim]")

    def fail(status: SessionStatus, message: str) -> typer.Exit:
        store.update(session_id, status=status, error_message=message)
        console.print(f"\n[red]  Error:[/red] {escape(message)}")
        console.print(f"[dim]  Session {session_id} saved — use 'grokpilot session {session_id}' to review[/dim]")
        return typer.Exit(code=1)

    try:
        result = asyncio.run(run_grok(bundle.text, options, settings, on_progress))
    except GrokPilotError as exc:
        status = SessionStatus.TIMEOUT if isinstance(exc, CaptureTimeout) else SessionStatus.FAILED
        raise fail(status, str(exc)) from None
    except KeyboardInterrupt:
        raise fail(SessionStatus.FAILED, "Interrupted") from None
    except Exception as exc:
        raise fail(SessionStatus.FAILED, f"{type(exc).__name__}: {exc}") from None

    store.update(session_id, status=SessionStatus.COMPLETED, answer=result.answer, duration_ms=result.duration_ms)
    print_answer(result.answer)
    if write_output:
        try:
            write_output_file(write_output, result.answer)
        except OSError as exc:
            console.print(f"[red]  Could not write output file:[/red] {escape(str(exc))}")
            raise typer.Exit(code=1) from None
    if copy and copy_to_clipboard(result.answer):
        console.print("[dim]  Answer copied to clipboard[/dim]")
