"""Config-driven session retention — caps session count and age, optionally sparing failures."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from pagediff.models.config import RetentionConfig
from pagediff.models.session import Session, utc_now

from .store import SessionStore

logger = logging.getLogger(__name__)

FAILED_VERDICTS = ("LAYOUT_BROKEN", "UNEXPECTED_CHANGE")


class RetentionResult(BaseModel):
    deleted: list[str] = Field(default_factory=list)
    kept: list[str] = Field(default_factory=list)
    kept_failed: list[str] = Field(default_factory=list)
    total_before: int = 0
    total_after: int = 0


class RetentionStatus(BaseModel):
    config: RetentionConfig
    current_sessions: int = 0
    oldest_session: Optional[datetime] = None
    newest_session: Optional[datetime] = None
    would_delete: int = 0


def is_failed_session(session: Session) -> bool:
    return session.analysis is not None and session.analysis.verdict in FAILED_VERDICTS


def _plan(sessions: list[Session], config: RetentionConfig) -> RetentionResult:
    """Decide which sessions go, newest first, without touching disk."""
    result = RetentionResult(total_before=len(sessions))
    if not config.max_sessions and not config.max_age_days:
        result.kept = [s.id for s in sessions]
        result.total_after = len(sessions)
        return result

    cutoff = utc_now() - timedelta(days=config.max_age_days) if config.max_age_days else None
    kept_count = 0
    for session in sessions:
        if config.keep_failed and is_failed_session(session):
            result.kept.append(session.id)
            result.kept_failed.append(session.id)
            continue

        too_old = cutoff is not None and session.created_at < cutoff
        over_limit = bool(config.max_sessions) and kept_count >= config.max_sessions
        if too_old or over_limit:
            result.deleted.append(session.id)
        else:
            result.kept.append(session.id)
            kept_count += 1

    result.total_after = len(result.kept)
    return result


def enforce_retention_policy(store: SessionStore, config: RetentionConfig) -> RetentionResult:
    """Delete sessions that fall outside ``config``."""
    result = _plan(store.list_sessions(), config)
    for session_id in result.deleted:
        store.delete(session_id)
    if result.deleted:
        logger.info(
            "Retention removed %d session(s) (%d -> %d)",
            len(result.deleted), result.total_before, result.total_after,
        )
    return result


def maybe_auto_clean(store: SessionStore, config: RetentionConfig) -> RetentionResult | None:
    """Enforce retention only when ``auto_clean`` is enabled."""
    if not config.auto_clean:
        return None
    return enforce_retention_policy(store, config)


def get_retention_status(store: SessionStore, config: RetentionConfig) -> RetentionStatus:
    sessions = store.list_sessions()
    plan = _plan(sessions, config)
    return RetentionStatus(
        config=config,
        current_sessions=len(sessions),
        oldest_session=sessions[-1].created_at if sessions else None,
        newest_session=sessions[0].created_at if sessions else None,
        would_delete=len(plan.deleted),
    )


def format_retention_status(status: RetentionStatus) -> str:
    lines = [
        "Session Retention Status",
        "========================",
        "",
        f"Current sessions: {status.current_sessions}",
    ]
    if status.oldest_session:
        lines.append(f"Oldest: {status.oldest_session.isoformat()}")
    if status.newest_session:
        lines.append(f"Newest: {status.newest_session.isoformat()}")

    cfg = status.config
    lines += [
        "",
        "Retention Policy:",
        f"  Max sessions: {cfg.max_sessions or 'unlimited'}",
        f"  Max age: {f'{cfg.max_age_days} days' if cfg.max_age_days else 'unlimited'}",
        f"  Keep failed: {'yes' if cfg.keep_failed else 'no'}",
        f"  Auto-clean: {'enabled' if cfg.auto_clean else 'disabled'}",
        "",
    ]
    if status.would_delete > 0:
        lines.append(f"{status.would_delete} session(s) would be deleted if cleanup runs")
    else:
        lines.append("All sessions within retention policy")
    return "\n".join(lines)
