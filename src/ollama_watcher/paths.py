"""Path policy: which files are worth reviewing, and which observer events matter.

Reviewability is a denylist: anything that is not a known binary/media/archive
format is reviewed, including files without an extension (often scripts).
"""

from __future__ import annotations

from pathlib import Path, PurePath, PurePosixPath

from .models import ChangeEvent, FileSaved, HeadMoved

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        # images
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".icns", ".tif",
        ".tiff", ".webp", ".psd", ".heic", ".avif", ".raw",
        # audio / video
        ".mp3", ".wav", ".ogg", ".flac", ".aac", ".m4a", ".wma",
        ".mp4", ".avi", ".mov", ".mkv", ".webm", ".wmv", ".flv", ".m4v",
        # archives
        ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".zst",
        ".jar", ".war", ".whl", ".egg",
        # fonts
        ".ttf", ".otf", ".woff", ".woff2", ".eot",
        # databases
        ".db", ".sqlite", ".sqlite3", ".mdb", ".accdb",
        # compiled artifacts
        ".exe", ".dll", ".so", ".dylib", ".o", ".obj", ".a", ".lib", ".bin",
        ".class", ".pyc", ".pyo", ".pyd", ".wasm", ".dex", ".apk", ".ipa",
        # documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".odt", ".ods", ".odp",
        # misc blobs
        ".iso", ".dmg", ".img", ".pkl", ".npy", ".npz", ".h5", ".parquet",
    }
)

EXCLUDED_DIRS: frozenset[str] = frozenset({"node_modules", ".git", ".idea", ".vscode"})
EXCLUDED_FILES: frozenset[str] = frozenset({".DS_Store"})


def is_reviewable(path: str | PurePath) -> bool:
    """Return False only for known binary-ish extensions (case-insensitive)."""

    suffix = PurePath(path).suffix
    if not suffix:
        return True
    return suffix.lower() not in BINARY_EXTENSIONS


def _relative_parts(path: str | Path, base_dir: Path) -> tuple[str, ...] | None:
    try:
        rel = Path(path).resolve().relative_to(base_dir.resolve())
    except ValueError:
        return None
    return rel.parts


def is_watch_excluded(path: str | Path, base_dir: Path) -> bool:
    """True for paths the file-save watcher must never report.

    Paths outside `base_dir` are excluded too.
    """

    parts = _relative_parts(path, base_dir)
    if not parts:
        return True
    if parts[-1] in EXCLUDED_FILES:
        return True
    return any(part in EXCLUDED_DIRS for part in parts[:-1]) or parts[-1] in EXCLUDED_DIRS


def _is_head_ref(path: str | Path, git_dir: Path) -> bool:
    parts = _relative_parts(path, git_dir)
    if not parts or parts[-1].endswith(".lock"):
        return False
    if parts == ("HEAD",):
        return True
    return len(parts) > 2 and parts[:2] == ("refs", "heads")


def classify_path(
    path: str | Path,
    base_dir: Path,
    git_dir: Path | None = None,
) -> ChangeEvent | None:
    """Map a raw observer path to the event it stands for, or None to ignore it.

    `git_dir` defaults to `base_dir/.git`; pass the real one when watching a
    subdirectory of the work tree.
    """

    if _is_head_ref(path, git_dir or base_dir / ".git"):
        return HeadMoved()
    if is_watch_excluded(path, base_dir):
        return None
    return FileSaved(path=str(Path(path).resolve()))


def to_repo_relative(path: str | Path, base_dir: Path) -> str | None:
    """Normalise `path` to a POSIX path relative to `base_dir` (None if outside)."""

    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    parts = _relative_parts(candidate, base_dir)
    if not parts:
        return None
    return str(PurePosixPath(*parts))
