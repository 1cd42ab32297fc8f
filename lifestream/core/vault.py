"""VaultEngine — plain-file storage under a single vault directory."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from .config import AppConfig
from .errors import ValidationError

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.@-]{1,64}$")


def check_id(value: str | None, kind: str = "id") -> str:
    """Return *value* if it can name a file or a frontmatter field, else raise."""
    if not _SAFE_ID.match(value or "") or value in (".", ".."):
        raise ValidationError(f"Invalid {kind}: {value!r}")
    return value


def user_dir(user_id: str, *parts: str) -> str:
    """Vault-relative directory of a user's sub-tree, e.g. ``local/reports``."""
    return "/".join((check_id(user_id, "user id"), *parts))


class VaultEngine:
    """Relative-path file I/O rooted at the configured vault directory.

    Each store owns a sub-tree (``<user>/logs``, ``<user>/reports``,
    ``<user>/todos``); the engine knows nothing about their formats.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, config: AppConfig) -> VaultEngine:
        return cls(config.vault_path)

    def _path(self, rel_path: str) -> Path:
        path = (self._root / rel_path).resolve()
        if self._root.resolve() not in path.parents and path != self._root.resolve():
            raise ValueError(f"Path escapes vault: {rel_path}")
        return path

    def read_resource(self, rel_path: str) -> str | None:
        """Read a file from the vault. Returns None if not found."""
        path = self._path(rel_path)
        try:
            if path.is_file():
                return path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Could not read %s", path, exc_info=True)
        return None

    def write_resource(self, content: str, directory: str, filename: str) -> None:
        """Write text content to a file in the vault, replacing it atomically."""
        dir_path = self._path(directory)
        dir_path.mkdir(parents=True, exist_ok=True)
        file_path = dir_path / filename
        tmp_path = file_path.with_suffix(file_path.suffix + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(file_path)

    def append_resource(self, line: str, directory: str, filename: str) -> None:
        """Append one line to a file, creating it if needed."""
        dir_path = self._path(directory)
        dir_path.mkdir(parents=True, exist_ok=True)
        with open(dir_path / filename, "a", encoding="utf-8") as fh:
            fh.write(line.rstrip("\n") + "\n")

    def list_resources(self, directory: str, suffix: str = ".md") -> list[str]:
        """List filenames with *suffix* under a vault directory, sorted."""
        dir_path = self._path(directory)
        if not dir_path.is_dir():
            return []
        return sorted(f.name for f in dir_path.glob(f"*{suffix}") if f.is_file())

    def delete_resource(self, rel_path: str) -> bool:
        """Delete a file from the vault. Returns True if it existed."""
        path = self._path(rel_path)
        if path.exists():
            path.unlink()
            return True
        return False

    def move_resource(self, from_rel: str, to_rel: str) -> bool:
        """Move a file within the vault. Returns True on success."""
        src = self._path(from_rel)
        if not src.exists():
            return False
        dst = self._path(to_rel)
        dst.parent.mkdir(parents=True, exist_ok=True)
        src.replace(dst)
        return True
