from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json

from docformat.document import DocumentSnapshot
from docformat.ir import FormatScope


@dataclass
class OperationLogEntry:
    id: str
    title: str
    timestamp: float
    scope: FormatScope
    item_ids: List[str] = field(default_factory=list)
    summary: str = ""
    snapshot: Optional[DocumentSnapshot] = None  # document state before the batch ran

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "timestamp": self.timestamp,
            "scope": self.scope.to_dict(),
            "item_ids": list(self.item_ids),
            "summary": self.summary,
        }


class OperationLog:
    """Undo history for one engine. LIFO, no redo."""

    def __init__(self) -> None:
        self._entries: List[OperationLogEntry] = []

    def append(self, entry: OperationLogEntry) -> None:
        self._entries.append(entry)

    def pop(self) -> Optional[OperationLogEntry]:
        if not self._entries:
            return None
        return self._entries.pop()

    def list(self) -> List[OperationLogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def to_payload(self) -> Dict[str, Any]:
        return {"entries": [e.to_dict() for e in self._entries]}

    def write_json(self, path: str) -> None:
        write_json(path, self.to_payload())


def write_json(path: str, payload: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
