"""Finalized snapshot persistence.

Provides lightweight JSON-based storage for finalized forecast snapshots so they can be shown
again without rerunning the session.
"""

from __future__ import annotations

import re
import uuid
from pathlib import Path

import structlog
from pydantic import ValidationError

from evidence_forecast.paths import DEFAULT_SESSIONS_DIR

from .schemas import ForecastSnapshot

logger = structlog.get_logger()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class ForecastSessionStore:
    """Manages persistence of finalized snapshots, one JSON file per session id."""

    def __init__(self, state_dir: Path | None = None) -> None:
        """
        Initialize session store.

        Args:
            state_dir: Directory for snapshot files (defaults to data/forecasts)
        """
        if state_dir is None:
            state_dir = DEFAULT_SESSIONS_DIR

        self.state_dir = state_dir
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def _get_state_file(self, session_id: str) -> Path:
        """Get snapshot file path for a session id."""
        safe_id = _UNSAFE_CHARS.sub("_", session_id)
        return self.state_dir / f"{safe_id}.json"

    @staticmethod
    def new_session_id() -> str:
        return uuid.uuid4().hex[:12]

    def save(self, snapshot: ForecastSnapshot, session_id: str | None = None) -> str:
        """
        Persist a finalized snapshot.

        Args:
            snapshot: Snapshot to store
            session_id: Identifier to store it under (generated when omitted)

        Returns:
            The session id the snapshot was stored under
        """
        session_id = session_id or self.new_session_id()
        state_file = self._get_state_file(session_id)
        state_file.write_text(snapshot.model_dump_json(by_alias=True, indent=2))
        logger.debug("saved_forecast_snapshot", session_id=session_id, state_file=str(state_file))
        return session_id

    def load(self, session_id: str) -> ForecastSnapshot | None:
        """
        Load a persisted snapshot.

        Args:
            session_id: Session identifier

        Returns:
            The snapshot, or None if not found or unreadable
        """
        state_file = self._get_state_file(session_id)

        if not state_file.exists():
            return None

        try:
            snapshot = ForecastSnapshot.model_validate_json(state_file.read_text())
        except (OSError, ValidationError) as e:
            logger.warning("failed_to_load_forecast_snapshot", session_id=session_id, error=str(e))
            return None
        logger.debug("loaded_forecast_snapshot", session_id=session_id)
        return snapshot

    def list_sessions(self) -> list[str]:
        return sorted(path.stem for path in self.state_dir.glob("*.json"))

    def clear(self, session_id: str) -> bool:
        """
        Delete a persisted snapshot.

        Returns:
            True if a snapshot file was removed
        """
        state_file = self._get_state_file(session_id)

        if not state_file.exists():
            return False
        state_file.unlink()
        logger.debug("cleared_forecast_snapshot", session_id=session_id)
        return True
