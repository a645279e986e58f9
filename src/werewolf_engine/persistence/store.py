"""Snapshot storage for durable sessions.

The engine serializes GameState to a YAML document after every committed
operation and hands it to a SnapshotStore. At process restart the store
is asked for the document and the state is rebuilt from it.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Union, TYPE_CHECKING

import yaml

# Import for type hints only (engine imports this package)
if TYPE_CHECKING:
    from werewolf_engine.engine.game_state import GameState

logger = logging.getLogger(__name__)


def serialize_state(state: "GameState") -> str:
    """GameState -> YAML text."""
    data = state.model_dump(mode="json")
    return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)


def deserialize_state(data: str) -> "GameState":
    """YAML text -> GameState."""
    from werewolf_engine.engine.game_state import GameState

    return GameState.model_validate(yaml.safe_load(data))


class SnapshotStore(Protocol):
    """Durable home for serialized sessions."""

    async def save_snapshot(self, game_id: str, data: str) -> None:
        ...

    async def load_snapshot(self, game_id: str) -> Optional[str]:
        ...

    async def delete_snapshot(self, game_id: str) -> None:
        ...


class InMemorySnapshotStore:
    """Dictionary-backed store for tests and single-process runs."""

    def __init__(self) -> None:
        self.snapshots: dict[str, str] = {}
        self.saves = 0

    async def save_snapshot(self, game_id: str, data: str) -> None:
        self.snapshots[game_id] = data
        self.saves += 1

    async def load_snapshot(self, game_id: str) -> Optional[str]:
        return self.snapshots.get(game_id)

    async def delete_snapshot(self, game_id: str) -> None:
        self.snapshots.pop(game_id, None)


class YamlDirectoryStore:
    """One ``<game_id>.yaml`` file per session under a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, game_id: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in game_id)
        return self.directory / f"{safe}.yaml"

    def _write(self, path: Path, data: str) -> None:
        tmp = path.with_suffix(".yaml.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(data)
        tmp.replace(path)

    async def save_snapshot(self, game_id: str, data: str) -> None:
        await asyncio.to_thread(self._write, self._path(game_id), data)

    async def load_snapshot(self, game_id: str) -> Optional[str]:
        path = self._path(game_id)
        if not path.exists():
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def delete_snapshot(self, game_id: str) -> None:
        path = self._path(game_id)
        if path.exists():
            path.unlink()
            logger.info("Deleted snapshot %s", path)
