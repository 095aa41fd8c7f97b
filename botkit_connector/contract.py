"""
Connector Contract.
Canonical message shapes exchanged with the harness, and channel states.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class ChannelState(str, enum.Enum):
    UNOPENED = "unopened"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class UserMessage:
    text: str
    structured_payload: Optional[Dict[str, Any]] = None  # merged over wire fields


@dataclass
class Button:
    text: Optional[str]
    payload: Any = None


@dataclass
class Media:
    media_uri: Optional[str]


@dataclass
class BotMessage:
    source_data: Dict[str, Any] = field(default_factory=dict)
    text: Optional[str] = None
    buttons: Optional[List[Button]] = None
    media: Optional[List[Media]] = None
