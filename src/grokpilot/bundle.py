"""Prompt bundle assembly: resolve file patterns and wrap them with the question.

The bundle is plain text handed to the browser engine as-is::

    <system> preamble </system>
    <files> ### path + fenced content per file </files>
    <question> prompt </question>
"""

from __future__ import annotations

import glob
import logging
import os
import re
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 1_000_000
MAX_TOTAL_CHARS = 200_000

PREAMBLE = (
    "You are Grok, a highly capable AI assistant by xAI. "
    "Below is context from the user's files followed by their question. "
    "Use all provided context to give a thorough, accurate answer."
)

_SENSITIVE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"[/\\]\.ssh[/\\]",
        r"[/\\]\.aws[/\\]",
        r"/\.gnupg/",
        r"/etc/",
        r"/proc/",
        r"/sys/",
        r"id_rsa",
        r"id_ed25519",
        r"credentials",
        r"\.env$",
        r"private.*key",
        r"secret",
    )
]

_LANGUAGES = {
    "ts": "typescript", "tsx": "typescript",
    "js": "javascript", "jsx": "javascript", "mjs": "javascript", "cjs": "javascript",
    "py": "python", "rs": "rust", "go": "go", "java": "java", "kt": "kotlin",
    "swift": "swift", "c": "c", "h": "c",
    "cpp": "cpp", "cc": "cpp", "cxx": "cpp", "hpp": "cpp",
    "cs": "csharp", "rb": "ruby", "php": "php",
    "sh": "bash", "bash": "bash", "zsh": "bash",
    "md": "markdown", "json": "json", "json5": "json5",
    "yaml": "yaml", "yml": "yaml", "toml": "toml",
    "xml": "xml", "html": "html", "htm": "html",
    "css": "css", "scss": "scss", "sass": "sass", "less": "less",
    "sql": "sql", "graphql": "graphql", "gql": "graphql",
    "env": "bash", "txt": "text",
}  # fmt: skip


@dataclass
class Bundle:
    """An assembled prompt bundle."""

    text: str
    file_count: int = 0
    char_count: int = 0
    skipped_files: list[str] = field(default_factory=list)


def format_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes}B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f}KB"
    return f"{num_bytes / 1024 / 1024:.1f}MB"


def detect_language(path: str | Path) -> str:
    """Return the code-fence language tag for *path*."""
    p = Path(path)
    name = p.name.lower()
    if name in ("dockerfile", "makefile"):
        return name
    ext = p.suffix.lower().lstrip(".")
    return _LANGUAGES.get(ext, ext or "text")


def is_sensitive(pattern: str) -> bool:
    return any(rx.search(pattern) for rx in _SENSITIVE_PATTERNS)


def resolve_files(patterns: list[str]) -> list[str]:
    """Expand glob *patterns* into a sorted list of regular files.

    ``!pattern`` entries exclude matches. Directories expand to everything
    below them. Dot-files are skipped and symlinks are not followed.
    """
    includes: list[str] = []
    excludes: list[str] = []
    for pattern in patterns:
        if pattern.startswith("!"):
            excludes.append(pattern[1:])
            continue
        if is_sensitive(pattern):
            logger.warning(
                "File pattern may include sensitive data: %s — this content will be sent to grok.com",
                pattern,
            )
        includes.append(f"{pattern.rstrip('/')}/**/*" if os.path.isdir(pattern) else pattern)

    found: set[str] = set()
    for pattern in includes:
        for match in glob.glob(pattern, recursive=True):
            if not os.path.isfile(match) or _crosses_symlink(match, _glob_base(pattern)):
                continue
            if _is_excluded(match, excludes):
                continue
            found.add(os.path.normpath(match))
    return sorted(found)


def _glob_base(pattern: str) -> Path:
    parts: list[str] = []
    for part in Path(pattern).parts:
        if glob.has_magic(part):
            break
        parts.append(part)
    return Path(*parts) if parts else Path()


def _crosses_symlink(path: str, base: Path) -> bool:
    """True if *path* or a directory between it and *base* is a symlink."""
    depth = len(base.parts)
    current = Path(path)
    while len(current.parts) > depth:
        if current.is_symlink():
            return True
        current = current.parent
    return False


def _is_excluded(path: str, excludes: list[str]) -> bool:
    norm = os.path.normpath(path)
    for pattern in excludes:
        pattern = os.path.normpath(pattern)
        if fnmatch(norm, pattern) or fnmatch(norm, os.path.join(pattern, "*")):
            return True
    return False


def build_bundle(prompt: str, patterns: list[str] | None = None) -> Bundle:
    """Assemble *prompt* and the files matched by *patterns* into a ``Bundle``.

    Files over ``MAX_FILE_BYTES`` or that would push the file content past
    ``MAX_TOTAL_CHARS`` are skipped and listed in ``skipped_files``.
    """
    files = resolve_files(patterns or [])
    skipped: list[str] = []
    file_sections: list[str] = []
    total_chars = 0

    for path in files:
        try:
            size = os.path.getsize(path)
            if size > MAX_FILE_BYTES:
                skipped.append(f"{path} (too large: {format_size(size)})")
                logger.debug("Skipping %s: %s exceeds limit", path, format_size(size))
                continue
            content = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            skipped.append(f"{path} (read error: {exc})")
            continue

        if total_chars + len(content) > MAX_TOTAL_CHARS:
            skipped.append(f"{path} (total char limit reached)")
            logger.debug("Skipping %s: total char limit reached", path)
            continue

        file_sections.append(f"### {path}\n```{detect_language(path)}\n{content}\n```")
        total_chars += len(content)
        logger.debug("Added %s (%s)", path, format_size(size))

    sections = [f"<system>\n{PREAMBLE}\n</system>"]
    if file_sections:
        sections.append("<files>\n" + "\n\n".join(file_sections) + "\n</files>")
    sections.append(f"<question>\n{prompt}\n</question>")
    text = "\n\n".join(sections)

    return Bundle(text=text, file_count=len(file_sections), char_count=len(text), skipped_files=skipped)
