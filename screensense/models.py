from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional


class AIStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    DISABLED = "disabled"
    COMPLETE = "complete"
    SKIPPED = "skipped"
    ERROR = "error"
    ENHANCING = "enhancing"
    ENHANCED = "enhanced"


ENHANCEABLE_STATUSES = frozenset({AIStatus.COMPLETE, AIStatus.ENHANCED})


@dataclass(frozen=True)
class Action:
    title: str
    command: str = ""
    notes: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class Resource:
    title: str
    url: str = ""
    reason: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class AssistResult:
    description: str
    actions: List[Action] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)
    model: Optional[str] = None
    response_id: Optional[str] = None


@dataclass
class CaptureRecord:
    file_name: str
    file_path: Path
    timestamp: str
    ai_status: AIStatus
    ai_description: Optional[str] = None
    ai_enhanced_description: Optional[str] = None
    actions: List[Action] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)
    ai_model: Optional[str] = None
    ai_response_id: Optional[str] = None
    generation: int = 0


@dataclass
class LogEntry:
    """One row of ai_results.json. Keys follow the on-disk format."""

    file: str
    ai_description: Optional[str]
    timestamp: str
    model: Optional[str] = None
    response_id: Optional[str] = None
    actions: List[Action] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)
    ai_enhanced_description: Optional[str] = None
    enhanced_actions: Optional[List[Action]] = None
    enhanced_resources: Optional[List[Resource]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file": self.file,
            "ai_description": self.ai_description,
            "timestamp": self.timestamp,
            "model": self.model,
            "responseId": self.response_id,
            "actions": [item.to_dict() for item in self.actions],
            "resources": [item.to_dict() for item in self.resources],
        }
        if self.ai_enhanced_description is not None:
            data["ai_enhanced_description"] = self.ai_enhanced_description
        if self.enhanced_actions is not None:
            data["enhanced_actions"] = [item.to_dict() for item in self.enhanced_actions]
        if self.enhanced_resources is not None:
            data["enhanced_resources"] = [item.to_dict() for item in self.enhanced_resources]
        return data


@dataclass
class OperationResult:
    ok: bool
    error: Optional[str] = None
    cancelled: bool = False
    copied: bool = False
    opened: bool = False
    deleted_file: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "OperationResult":
        return cls(ok=False, error=error)
