"""Conversation message records."""

import itertools
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict


_sequence = itertools.count(1)


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """One immutable entry in the conversation log."""

    id: str
    role: Role
    content: str
    created_at: str

    @classmethod
    def create(cls, role: Role, content: str) -> "Message":
        """Create a message stamped with a time-ordered id."""
        # time_ns alone can collide on coarse clocks
        message_id = f"msg_{time.time_ns():x}_{next(_sequence)}"
        return cls(
            id=message_id,
            role=Role(role),
            content=content,
            created_at=datetime.now().isoformat(),
        )

    def to_wire(self) -> Dict[str, str]:
        """Convert to the role/content pair sent to language-model backends."""
        return {"role": self.role.value, "content": self.content}
