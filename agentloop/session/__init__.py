"""Session snapshots stored as JSON files in a per-project directory."""

import hashlib
import json
import os
import re
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from agentloop.exceptions import SessionError
from agentloop.logging import get_logger

log = get_logger(__name__)

META_FILENAME = "meta.json"
LEGACY_DIRNAME = ".agent"
SESSION_PREFIX = "session-"
SESSION_SUFFIX = ".json"


def _utcnow_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


def _is_session_file(name: str) -> bool:
    return name.startswith(SESSION_PREFIX) and name.endswith(SESSION_SUFFIX)


@dataclass
class SessionSnapshot:
    """Everything needed to inspect a conversation after the fact."""

    model: str
    max_tokens: int
    messages: list[dict[str, Any]] = field(default_factory=list)
    created_at: str = field(default_factory=_utcnow_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "maxTokens": self.max_tokens,
            "createdAt": self.created_at,
            "messages": self.messages,
        }


class SessionSink(ABC):
    """Destination for conversation snapshots."""

    @abstractmethod
    def write(self, snapshot: SessionSnapshot) -> Path | None:
        """Persist a full snapshot, replacing the previous one for this run."""
        pass


class NullSessionSink(SessionSink):
    """Sink that drops every snapshot."""

    def write(self, snapshot: SessionSnapshot) -> Path | None:
        return None


@dataclass(frozen=True)
class ProjectSlug:
    slug: str
    hash: str
    base_name: str


def _real_cwd(cwd: Path | str) -> Path:
    path = Path(cwd).expanduser()
    return Path(os.path.realpath(path)) if path.exists() else path.resolve()


def derive_project_slug(cwd: Path | str) -> ProjectSlug:
    """Derive a stable directory name for the project rooted at *cwd*."""
    real = _real_cwd(cwd)
    digest = hashlib.sha256(str(real).encode("utf-8")).hexdigest()[:10]
    base_name = re.sub(r"[^a-z0-9]+", "-", real.name.lower()).strip("-") or "project"
    return ProjectSlug(slug=f"{base_name}-{digest}", hash=digest, base_name=base_name)


def _ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    if os.name == "nt":
        return
    try:
        path.chmod(0o700)
    except OSError as e:
        log.debug("Could not restrict session directory permissions", path=str(path), error=str(e))


class SessionStore(SessionSink):
    """Writes one snapshot file per run into ``<root>/<project slug>/``."""

    def __init__(self, root: Path | str, cwd: Path | str | None = None):
        self.root = Path(root).expanduser()
        self.cwd = _real_cwd(cwd if cwd is not None else Path.cwd())
        self.project = derive_project_slug(self.cwd)
        self.project_dir = self.root / self.project.slug
        self._session_path: Path | None = None
        self._initialized = False

    @classmethod
    def from_config(cls, config: Any, cwd: Path | str | None = None) -> "SessionStore":
        return cls(root=config.session.dir, cwd=cwd)

    @property
    def session_path(self) -> Path | None:
        """File this run writes to, once the first snapshot has been written."""
        return self._session_path

    def read_meta(self) -> dict[str, Any] | None:
        meta_path = self.project_dir / META_FILENAME
        if not meta_path.is_file():
            return None
        try:
            data = json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Unreadable session meta file", path=str(meta_path), error=str(e))
            return None
        return data if isinstance(data, dict) else None

    def _write_meta(self, meta: dict[str, Any]) -> None:
        (self.project_dir / META_FILENAME).write_text(json.dumps(meta, indent=2), encoding="utf-8")

    def init_project_dir(self) -> int:
        """Create the project session directory and meta file.

        Returns:
            Number of legacy session files migrated into the directory

        Raises:
            SessionError if the directory or meta file cannot be written
        """
        try:
            _ensure_private_dir(self.root)
            _ensure_private_dir(self.project_dir)
            meta = self.read_meta()
            if meta is None:
                now = _utcnow_iso()
                meta = {
                    "cwd": str(self.cwd),
                    "slug": self.project.slug,
                    "hash": self.project.hash,
                    "createdAt": now,
                    "updatedAt": now,
                }
                self._write_meta(meta)
            migrated = self._migrate_legacy_sessions(meta)
        except OSError as e:
            raise SessionError(f"Cannot initialize session directory {self.project_dir}: {e}") from e
        self._initialized = True
        return migrated

    def _migrate_legacy_sessions(self, meta: dict[str, Any]) -> int:
        legacy_dir = self.cwd / LEGACY_DIRNAME
        if not legacy_dir.is_dir():
            return 0
        legacy_files = sorted(p for p in legacy_dir.iterdir() if _is_session_file(p.name))
        if not legacy_files or self.list_sessions():
            return 0

        migrated = 0
        for source in legacy_files:
            try:
                shutil.copyfile(source, self.project_dir / source.name)
                migrated += 1
            except OSError as e:
                log.warning("Failed to migrate legacy session", path=str(source), error=str(e))
        if migrated:
            meta["migrated"] = True
            meta["updatedAt"] = _utcnow_iso()
            self._write_meta(meta)
            log.info("Migrated legacy sessions", count=migrated, project_dir=str(self.project_dir))
        return migrated

    def _next_session_path(self, now: datetime) -> Path:
        base = f"{SESSION_PREFIX}{now.strftime('%Y%m%d-%H%M%S')}"
        candidate = self.project_dir / f"{base}{SESSION_SUFFIX}"
        counter = 1
        while candidate.exists():
            candidate = self.project_dir / f"{base}-{counter}{SESSION_SUFFIX}"
            counter += 1
        return candidate

    def write(self, snapshot: SessionSnapshot) -> Path:
        """Overwrite this run's session file with *snapshot*.

        Raises:
            SessionError on any filesystem failure
        """
        if not self._initialized:
            self.init_project_dir()
        if self._session_path is None:
            self._session_path = self._next_session_path(datetime.now())
        try:
            self._session_path.write_text(
                json.dumps(snapshot.to_dict(), indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            raise SessionError(f"Cannot write session snapshot {self._session_path}: {e}") from e
        return self._session_path

    def list_sessions(self) -> list[str]:
        """Session file names in this project's directory, oldest first."""
        if not self.project_dir.is_dir():
            return []
        return sorted(p.name for p in self.project_dir.iterdir() if _is_session_file(p.name))


__all__ = [
    "SessionSink",
    "NullSessionSink",
    "SessionSnapshot",
    "SessionStore",
    "ProjectSlug",
    "derive_project_slug",
]
