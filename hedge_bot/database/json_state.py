import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from hedge_bot.dataclass.position import Position
from hedge_bot.database.trade_positions import position_to_row, row_to_position
from hedge_bot.errors import PersistenceError
from hedge_bot.interface.collaborators import IBoundaryStore, IPositionStore


class JsonStateFile:
    """
    One json document per symbol: {"boundary": {...}, "positions": {"MAIN": {...}, "HEDGE": {...}}}
    Writes go through a temp file + os.replace so a crash never leaves half a file.
    """

    def __init__(self, path: str, symbol: str):
        self.path = Path(path)
        self.symbol = symbol

    def read(self) -> Dict[str, Any]:
        try:
            if not self.path.exists():
                return {}
            return json.loads(self.path.read_text() or "{}")
        except (OSError, ValueError) as e:
            raise PersistenceError(str(self.path), f"read error: {e}") from e

    def update(self, key: str, value: Any) -> None:
        data = self.read()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2))
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(str(self.path), f"write error: {e}") from e


class JsonBoundaryState(IBoundaryStore):
    def __init__(self, state_file: JsonStateFile):
        self.state_file = state_file

    def save(self, state: Dict[str, Any]) -> None:
        boundaries = state.get("boundaries") or {}
        self.state_file.update(
            "boundary",
            {
                "trailing_boundary": state.get("trailing_boundary"),
                "boundaries": {"top": boundaries.get("top"), "bottom": boundaries.get("bottom")},
            },
        )

    def load(self) -> Optional[Dict[str, Any]]:
        return self.state_file.read().get("boundary")

    def clear(self) -> None:
        self.state_file.update("boundary", None)


class JsonTradePositions(IPositionStore):
    def __init__(self, state_file: JsonStateFile):
        self.state_file = state_file

    def _positions(self) -> Dict[str, Any]:
        return dict(self.state_file.read().get("positions") or {})

    def save_position(self, position: Position) -> None:
        positions = self._positions()
        positions[position.role] = position_to_row(self.state_file.symbol, position)
        self.state_file.update("positions", positions)

    def clear_position(self, role: str) -> None:
        positions = self._positions()
        if positions.pop(role, None) is not None:
            self.state_file.update("positions", positions)

    def load_positions(self) -> Dict[str, Position]:
        return {role: row_to_position(row) for role, row in self._positions().items()}

    def clear_all(self) -> None:
        self.state_file.update("positions", None)
