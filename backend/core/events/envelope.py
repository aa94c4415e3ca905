"""
Wire envelope shared by every topic.

    {"eventId": str, "eventType": str, "data": {...}, "timestamp": <epoch ms>}
"""
import hashlib
import json
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def normalize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """JSON round-trip so dates, UUIDs and Decimals become plain strings."""
    return json.loads(json.dumps(payload or {}, default=str))


def generate_event_id(event_type: str, payload: Dict[str, Any]) -> str:
    """
    Deterministic id for events published without one: SHA-256 hex digest
    of the canonical JSON of the type and the normalized payload.
    """
    canonical = json.dumps(
        {"eventType": event_type, "data": normalize_payload(payload)},
        sort_keys=True,
        separators=(",", ":"),
        default=str
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def select_partition_key(payload: Dict[str, Any], event_id: str) -> str:
    """Events about the same entity share a key, so they keep their order."""
    for field in ("productId", "inventoryId", "id"):
        value = payload.get(field)
        if value:
            return str(value)
    return event_id


class EventEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_id: Optional[str] = Field(default=None, alias="eventId")
    event_type: str = Field(alias="eventType")
    payload: Dict[str, Any] = Field(default_factory=dict, alias="data")
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))

    @model_validator(mode="after")
    def derive_missing_event_id(self) -> "EventEnvelope":
        # producers that omit eventId get the same id the publish side would derive
        if not self.event_id:
            self.event_id = generate_event_id(self.event_type, self.payload)
        return self

    @classmethod
    def create(
        cls,
        event_type: str,
        payload: Dict[str, Any],
        event_id: Optional[str] = None
    ) -> "EventEnvelope":
        data = normalize_payload(payload)
        return cls(
            event_id=event_id,
            event_type=event_type,
            payload=data
        )

    @classmethod
    def from_bytes(cls, raw: bytes) -> "EventEnvelope":
        return cls.model_validate_json(raw)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @property
    def partition_key(self) -> str:
        return select_partition_key(self.payload, self.event_id)

    def headers(self):
        """Kafka record headers, as (name, bytes) pairs."""
        return [
            ("eventId", self.event_id.encode("utf-8")),
            ("eventType", self.event_type.encode("utf-8")),
            ("timestamp", str(self.timestamp).encode("utf-8")),
        ]
