"""
Topic to handler registry.

Handlers are collected on a builder during service wiring and frozen before
the channel is created, so no subscription can arrive after the consumer
has started.
"""
from collections.abc import Mapping
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Union

from .envelope import EventEnvelope
from .topics import KafkaTopic

EventHandler = Callable[[EventEnvelope], Awaitable[None]]


def _topic_name(topic: Union[str, KafkaTopic]) -> str:
    return topic.value if isinstance(topic, KafkaTopic) else str(topic)


class HandlerRegistry(Mapping):
    """Read-only topic -> handler mapping."""

    def __init__(self, handlers: Dict[str, EventHandler]):
        self._handlers = MappingProxyType(dict(handlers))

    def __getitem__(self, topic: str) -> EventHandler:
        return self._handlers[_topic_name(topic)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def get_handler(self, topic: str) -> Optional[EventHandler]:
        return self._handlers.get(_topic_name(topic))

    @property
    def topics(self) -> List[str]:
        return list(self._handlers)


class HandlerRegistryBuilder:

    def __init__(self):
        self._handlers: Dict[str, EventHandler] = {}

    def subscribe(self, topic: Union[str, KafkaTopic], handler: EventHandler) -> "HandlerRegistryBuilder":
        name = _topic_name(topic)
        if name in self._handlers:
            raise ValueError(f"A handler is already subscribed to topic '{name}'")
        self._handlers[name] = handler
        return self

    def build(self) -> HandlerRegistry:
        return HandlerRegistry(self._handlers)
