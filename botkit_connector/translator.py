"""
Wire Message Translator.

Pure functions between the canonical message shapes (contract.py) and the
JSON payloads spoken by a Botkit runtime.
"""

import json
from typing import Any, Dict, List

from .contract import BotMessage, Button, Media, UserMessage
from .errors import MalformedPayloadError

MESSAGE_TYPE = "message"


def to_wire(
    message: UserMessage, user_id: str, channel: str, tag_type: bool = True
) -> Dict[str, Any]:
    """
    Build the outbound payload.

    Keys of message.structured_payload override the base fields. The webhook
    receive endpoint takes untagged bodies, hence tag_type=False there.
    """
    payload: Dict[str, Any] = {}
    if tag_type:
        payload["type"] = MESSAGE_TYPE
    payload.update(text=message.text, user=user_id, channel=channel)
    if message.structured_payload:
        payload.update(message.structured_payload)
    return payload


def from_wire(payload: Dict[str, Any]) -> BotMessage:
    """Build the canonical inbound message; absent wire fields stay None."""
    msg = BotMessage(source_data=payload)

    if payload.get("text"):
        msg.text = payload["text"]

    quick_replies = payload.get("quick_replies")
    if quick_replies is not None:
        msg.buttons = [
            Button(text=q.get("title"), payload=q.get("payload"))
            for q in _entries(quick_replies, "quick_replies")
        ]

    files = payload.get("files")
    if files is not None:
        msg.media = [Media(media_uri=f.get("url")) for f in _entries(files, "files")]

    return msg


def _entries(value: Any, name: str) -> List[Dict[str, Any]]:
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise MalformedPayloadError(f"'{name}' must be a list of objects")
    return value


def is_message(payload: Dict[str, Any]) -> bool:
    return payload.get("type") == MESSAGE_TYPE


def encode_frame(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)


def decode_frame(raw: str) -> Dict[str, Any]:
    """Parse one socket frame; raises MalformedPayloadError on anything but a JSON object."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedPayloadError(
            f"Error parsing incoming message from websocket. Message must be JSON: {e}",
            raw=raw,
        ) from e
    if not isinstance(data, dict):
        raise MalformedPayloadError(
            f"Incoming websocket message must be a JSON object, got {type(data).__name__}",
            raw=raw,
        )
    return data
