"""Session store — one JSON descriptor per session under <output_dir>/sessions/<id>/."""

from __future__ import annotations

import json
import logging
import re
import shutil
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from pagediff.errors import CorruptRecordError, SessionNotFoundError, ValidationError
from pagediff.models.config import Viewport
from pagediff.models.session import (
    Analysis,
    CleanResult,
    ComparisonResult,
    Session,
    SessionPaths,
    SessionQuery,
    SessionStats,
    utc_now,
)
from pagediff.url_utils import route_from_url

logger = logging.getLogger(__name__)

SESSION_PREFIX = "sess_"
SESSIONS_DIRNAME = "sessions"

_DURATION_RE = re.compile(r"^(\d+)(d|h|m|s)$")
_DURATION_UNITS_MS = {
    "d": 24 * 60 * 60 * 1000,
    "h": 60 * 60 * 1000,
    "m": 60 * 1000,
    "s": 1000,
}
# Fields callers may never overwrite through update()
_IMMUTABLE_FIELDS = {"id", "created_at"}


def generate_session_id() -> str:
    return f"{SESSION_PREFIX}{uuid.uuid4().hex[:10]}"


def get_session_paths(output_dir: str | Path, session_id: str) -> SessionPaths:
    root = Path(output_dir) / SESSIONS_DIRNAME / session_id
    return SessionPaths(
        root=root,
        session_json=root / "session.json",
        baseline=root / "baseline.png",
        current=root / "current.png",
        diff=root / "diff.png",
    )


def parse_duration(duration: str) -> int:
    """Parse '7d', '24h', '30m' or '60s' into milliseconds."""
    match = _DURATION_RE.match(duration or "")
    if not match:
        raise ValidationError(
            f"Invalid duration format: {duration!r}. Use format like '7d', '24h', '30m', '60s'"
        )
    return int(match.group(1)) * _DURATION_UNITS_MS[match.group(2)]


def _is_safe_id(session_id: str) -> bool:
    return bool(session_id) and "/" not in session_id and "\\" not in session_id and session_id not in (".", "..")


def _validate_query(query: dict[str, Any]) -> SessionQuery:
    try:
        return SessionQuery(**query)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}={err.get('input')!r}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid session query: {problems}") from e


class SessionStore:
    """Filesystem-backed CRUD, query and retention over session records.

    Writes are last-write-wins per session id; concurrent writers to the same
    id are not supported.
    """

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)

    @property
    def sessions_dir(self) -> Path:
        return self.output_dir / SESSIONS_DIRNAME

    def paths(self, session_id: str) -> SessionPaths:
        return get_session_paths(self.output_dir, session_id)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, url: str, name: str, viewport: Viewport) -> Session:
        """Create a session in ``baseline`` status and its artifact directory."""
        now = utc_now()
        session = Session(
            id=generate_session_id(),
            name=name,
            url=url,
            viewport=viewport,
            status="baseline",
            created_at=now,
            updated_at=now,
        )
        self.paths(session.id).root.mkdir(parents=True, exist_ok=True)
        self.save(session)
        logger.info("Created session %s for %s (%s)", session.id, url, viewport.name)
        return session

    def save(self, session: Session) -> None:
        """Write a session descriptor as-is."""
        paths = self.paths(session.id)
        paths.root.mkdir(parents=True, exist_ok=True)
        with open(paths.session_json, "w") as f:
            json.dump(session.model_dump(mode="json"), f, indent=2)
        logger.debug("Saved session %s to %s", session.id, paths.session_json)

    def _load(self, path: Path) -> Session:
        try:
            with open(path) as f:
                data = json.load(f)
            return Session.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError) as e:
            raise CorruptRecordError(str(path), str(e)) from e

    def read(self, session_id: str) -> Session | None:
        """Return the session, or None when it is missing or corrupt."""
        if not _is_safe_id(session_id):
            return None
        path = self.paths(session_id).session_json
        if not path.is_file():
            return None
        try:
            return self._load(path)
        except CorruptRecordError as e:
            logger.warning("%s", e)
            return None
        except OSError as e:
            logger.warning("Failed to read session %s: %s", session_id, e)
            return None

    def update(self, session_id: str, **updates: Any) -> Session:
        """Shallow-merge ``updates`` into the stored session and bump ``updated_at``."""
        forbidden = _IMMUTABLE_FIELDS & updates.keys()
        if forbidden:
            raise ValidationError(f"Cannot update immutable session fields: {sorted(forbidden)}")
        unknown = updates.keys() - Session.model_fields.keys()
        if unknown:
            raise ValidationError(f"Unknown session fields: {sorted(unknown)}")

        session = self.read(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        merged = {name: getattr(session, name) for name in Session.model_fields}
        merged.update(updates)
        merged["updated_at"] = utc_now()
        try:
            updated = Session.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid update for session {session_id}: {e}") from e

        self.save(updated)
        return updated

    def mark_compared(
        self, session_id: str, comparison: ComparisonResult, analysis: Analysis,
    ) -> Session:
        return self.update(session_id, status="compared", comparison=comparison, analysis=analysis)

    def reset_baseline(self, session_id: str) -> Session:
        """Accept the current state as the new reference: back to ``baseline``, results cleared."""
        return self.update(session_id, status="baseline", comparison=None, analysis=None)

    def delete(self, session_id: str) -> bool:
        """Remove a session's artifact directory. Idempotent; never raises."""
        if not _is_safe_id(session_id):
            return False
        root = self.paths(session_id).root
        try:
            shutil.rmtree(root)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to delete session %s: %s", session_id, e)
            return False
        logger.debug("Deleted session %s", session_id)
        return True

    # ------------------------------------------------------------------
    # Listing and queries
    # ------------------------------------------------------------------

    def list_sessions(self) -> list[Session]:
        """All readable sessions, newest first. Corrupt descriptors are skipped."""
        if not self.sessions_dir.is_dir():
            return []

        sessions: list[Session] = []
        for entry in self.sessions_dir.iterdir():
            if not entry.is_dir() or not entry.name.startswith(SESSION_PREFIX):
                continue
            session = self.read(entry.name)
            if session is not None:
                sessions.append(session)

        return sorted(sessions, key=lambda s: (s.created_at, s.id), reverse=True)

    def most_recent(self) -> Session | None:
        sessions = self.list_sessions()
        return sessions[0] if sessions else None

    def find(self, query: SessionQuery | dict[str, Any] | None = None, **criteria: Any) -> list[Session]:
        """Sessions matching every given criterion, newest first, truncated to ``limit``."""
        if isinstance(query, SessionQuery):
            query = query.model_dump(exclude_unset=True)
        q = _validate_query({**(query or {}), **criteria})

        results = [s for s in self.list_sessions() if self._matches(s, q)]
        return results[: q.limit]

    @staticmethod
    def _matches(session: Session, q: SessionQuery) -> bool:
        if q.route:
            pattern = q.route.lower()
            route = route_from_url(session.url).lower()
            if pattern not in route and route != pattern:
                return False
        if q.url and q.url.lower() not in session.url.lower():
            return False
        if q.status and session.status != q.status:
            return False
        if q.name and q.name.lower() not in session.name.lower():
            return False
        if q.viewport and session.viewport.name.lower() != q.viewport.lower():
            return False
        if q.created_after and session.created_at < q.created_after:
            return False
        if q.created_before and session.created_at > q.created_before:
            return False
        return True

    def timeline(self, route: str, limit: int = 10) -> list[Session]:
        """Sessions for a route in chronological order (oldest first)."""
        sessions = self.find(route=route, limit=limit)
        sessions.reverse()
        return sessions

    def by_route(self) -> dict[str, list[Session]]:
        grouped: dict[str, list[Session]] = {}
        for session in self.list_sessions():
            grouped.setdefault(route_from_url(session.url), []).append(session)
        return grouped

    def stats(self) -> SessionStats:
        stats = SessionStats()
        for session in self.list_sessions():
            stats.total += 1
            stats.by_status[session.status] = stats.by_status.get(session.status, 0) + 1
            vp = session.viewport.name
            stats.by_viewport[vp] = stats.by_viewport.get(vp, 0) + 1
            if session.analysis is not None:
                verdict = session.analysis.verdict
                stats.by_verdict[verdict] = stats.by_verdict.get(verdict, 0) + 1
        return stats

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def clean(
        self,
        older_than: str | None = None,
        keep_last: int = 0,
        dry_run: bool = False,
    ) -> CleanResult:
        """Delete sessions outside the ``keep_last`` newest that are older than ``older_than``.

        Without ``older_than`` every session beyond the newest ``keep_last`` is
        deleted. ``dry_run`` reports the same sets without touching the disk.
        """
        max_age_ms = parse_duration(older_than) if older_than is not None else None
        if keep_last < 0:
            raise ValidationError(f"keep_last must be >= 0, got {keep_last!r}")

        sessions = self.list_sessions()
        keep_ids = {s.id for s in sessions[:keep_last]}
        cutoff = utc_now() - timedelta(milliseconds=max_age_ms) if max_age_ms is not None else None

        result = CleanResult()
        for session in sessions:
            expired = cutoff is None or session.created_at < cutoff
            if session.id not in keep_ids and expired:
                if not dry_run:
                    self.delete(session.id)
                result.deleted.append(session.id)
            else:
                result.kept.append(session.id)

        logger.info(
            "%s %d session(s), kept %d",
            "Would delete" if dry_run else "Deleted", len(result.deleted), len(result.kept),
        )
        return result
