"""
Event-driven synchronization core: envelope, topics, handler registry and
the Kafka message channel.
"""

from .envelope import EventEnvelope, generate_event_id, normalize_payload, select_partition_key
from .topics import KafkaTopic
from .registry import EventHandler, HandlerRegistry, HandlerRegistryBuilder
from .channel import MessageChannel

__all__ = [
    'EventEnvelope',
    'generate_event_id',
    'normalize_payload',
    'select_partition_key',
    'KafkaTopic',
    'EventHandler',
    'HandlerRegistry',
    'HandlerRegistryBuilder',
    'MessageChannel'
]
