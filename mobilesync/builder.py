"""Build and package the local backend definitions.

The build mirrors <project>/<backend_dir> into .mobilesync/backend-build,
copying only files whose content changed and removing files that are gone.
Unchanged files keep their mtime, so the newest mtime under the build dir
tells when the backend definitions last really changed.

The packaged content uploaded to Mobile Hub is a zip of the build dir.
"""

import hashlib
import io
import os
import shutil
import zipfile
from pathlib import Path

from mobilesync.staleness import mtime_as_datetime
from mobilesync.state import STATE_DIR

BUILD_DIR = "backend-build"

ALWAYS_IGNORE = {
    "node_modules",
    ".git",
    "__pycache__",
    ".env",
    ".DS_Store",
    ".pytest_cache",
    ".mobilesync",
    ".mobilesyncignore",
}


def load_ignore_file(backend_path):
    """Load additional ignore patterns from .mobilesyncignore."""
    ignore_file = Path(backend_path) / ".mobilesyncignore"
    if not ignore_file.exists():
        return set()
    patterns = set()
    for line in ignore_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.add(line)
    return patterns


def get_ignore_set(backend_path):
    return ALWAYS_IGNORE | load_ignore_file(backend_path)


def should_ignore(path, ignore_set):
    """Check if a relative path matches any ignore pattern."""
    for part in path.parts:
        if part in ignore_set:
            return True
    return False


def backend_source_path(project_path, backend_dir="backend"):
    return Path(project_path) / backend_dir


def build_dir_path(project_path):
    return Path(project_path) / STATE_DIR / BUILD_DIR


def _digest(path):
    h = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def _source_files(root, ignore_set):
    files = {}
    for f in root.rglob("*"):
        rel = f.relative_to(root)
        if f.is_file() and not should_ignore(rel, ignore_set):
            files[rel] = f
    return files


def build_local_backend(project_path, backend_dir="backend"):
    """Mirror the backend definitions into the build dir.

    Returns (build_path, changed_files), or (None, []) when the project has
    no backend definitions.
    """
    source = backend_source_path(project_path, backend_dir)
    if not source.is_dir():
        return None, []
    build = build_dir_path(project_path)
    build.mkdir(parents=True, exist_ok=True)

    ignore_set = get_ignore_set(source)
    wanted = _source_files(source, ignore_set)
    changed = []

    for rel, src in sorted(wanted.items()):
        dest = build / rel
        if dest.is_file() and _digest(dest) == _digest(src):
            continue
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)
        changed.append(str(rel))

    # Remove files that no longer exist in the source, then empty dirs
    for f in sorted(build.rglob("*"), reverse=True):
        rel = f.relative_to(build)
        if f.is_file() and rel not in wanted:
            f.unlink()
            changed.append(str(rel))
        elif f.is_dir() and not any(f.iterdir()):
            f.rmdir()

    return build, changed


def get_build_dir_mtime(path):
    """Newest mtime of the dir or anything below it, as a datetime.

    Returns None when the path can't be stat'ed.
    """
    path = Path(path)
    try:
        newest = path.stat().st_mtime
    except OSError:
        return None
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            try:
                newest = max(newest, os.stat(os.path.join(root, name)).st_mtime)
            except OSError:
                continue
    return mtime_as_datetime(newest)


def package_backend_content(path):
    """Zip the build dir in memory. Returns bytes."""
    path = Path(path)
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in sorted(path.rglob("*")):
            if f.is_file():
                zf.write(f, arcname=f.relative_to(path).as_posix())
    return buf.getvalue()
