"""Session persistence: append-only stores of finished council sessions."""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Protocol, Union, runtime_checkable

from schemas.council import CouncilSession, GateType

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    """Where finished sessions go. Sessions are immutable once appended."""

    async def append(self, session: CouncilSession) -> None: ...

    async def list(self, project_id: Optional[str] = None) -> List[CouncilSession]: ...

    async def latest(self, project_id: str, gate_type: Optional[GateType] = None) -> Optional[CouncilSession]: ...


def _latest(sessions: List[CouncilSession], project_id: str, gate_type: Optional[GateType]) -> Optional[CouncilSession]:
    matching = [
        s for s in sessions
        if s.project_id == project_id and (gate_type is None or s.gate_type == GateType(gate_type))
    ]
    if not matching:
        return None
    return max(matching, key=lambda s: s.created_at)


class InMemorySessionStore:
    """Process-local store, mainly for tests and the playground server."""

    def __init__(self):
        self._sessions: List[CouncilSession] = []
        self._lock = asyncio.Lock()

    async def append(self, session: CouncilSession) -> None:
        async with self._lock:
            self._sessions.append(session)

    async def list(self, project_id: Optional[str] = None) -> List[CouncilSession]:
        async with self._lock:
            return [s for s in self._sessions if project_id is None or s.project_id == project_id]

    async def latest(self, project_id: str, gate_type: Optional[GateType] = None) -> Optional[CouncilSession]:
        async with self._lock:
            return _latest(self._sessions, project_id, gate_type)


class JsonFileSessionStore:
    """Sessions kept as one JSON array on disk.

    Every append rewrites the file through a temp file and ``os.replace`` so a
    crash never leaves a half-written array behind.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> List[CouncilSession]:
        if not self.path.exists():
            return []
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return []
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a JSON array")
        return [CouncilSession.model_validate(item) for item in data]

    def _write(self, sessions: List[CouncilSession]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            [s.model_dump(mode="json") for s in sessions],
            ensure_ascii=False,
            indent=2,
        )
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    async def append(self, session: CouncilSession) -> None:
        async with self._lock:
            sessions = self._read()
            sessions.append(session)
            self._write(sessions)
        logger.debug("Stored session %s in %s", session.id, self.path)

    async def list(self, project_id: Optional[str] = None) -> List[CouncilSession]:
        async with self._lock:
            sessions = self._read()
        return [s for s in sessions if project_id is None or s.project_id == project_id]

    async def latest(self, project_id: str, gate_type: Optional[GateType] = None) -> Optional[CouncilSession]:
        async with self._lock:
            sessions = self._read()
        return _latest(sessions, project_id, gate_type)
