"""Inbox of queued request files: scanning, frontmatter parsing, archiving."""

import shutil
from datetime import datetime
from pathlib import Path

import frontmatter

from deliberation.models import Request

# Frontmatter keys a request file may set; anything else is ignored.
_OVERRIDE_KEYS = ("topology", "max_iterations", "provider", "selection")


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all .md files in inbox_dir, oldest first."""
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def parse_file(file_path: Path) -> tuple[Request, dict]:
    """Parse a request file with optional YAML frontmatter.

    Returns:
        (request, overrides) where overrides holds only the recognized keys
        (topology, max_iterations, provider, selection) present in the file.
    """
    post = frontmatter.load(str(file_path))
    request = Request(text=post.content.strip(), source=str(file_path))
    overrides = {k: post.metadata[k] for k in _OVERRIDE_KEYS if k in post.metadata}
    if "max_iterations" in overrides:
        overrides["max_iterations"] = int(overrides["max_iterations"])
    return request, overrides


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move file to archive_dir with a timestamp prefix ("FAILED_" first when failed)."""
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
