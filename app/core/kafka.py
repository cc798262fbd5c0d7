"""
Kafka producer and consumer wrappers built on aiokafka.

Publishing is best-effort: when Kafka is disabled or not started, events are
dropped with a debug log. Callers additionally guard ``publish_event`` so
that a broker outage never fails a user-facing transition.
"""

import asyncio
import json
from collections.abc import Callable
from typing import Any, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer

from app.core.config import settings
from app.core.events import EventEnvelope
from app.core.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], None]


class KafkaProducer:
    """Process-wide aiokafka producer."""

    _producer: Optional[AIOKafkaProducer] = None
    _started: bool = False

    @classmethod
    async def start(cls) -> None:
        if not settings.KAFKA_ENABLED:
            logger.info("Kafka is disabled, producer not started")
            return
        if cls._started:
            return
        cls._producer = AIOKafkaProducer(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=settings.KAFKA_CLIENT_ID,
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
            key_serializer=lambda key: key.encode("utf-8") if key else None,
        )
        await cls._producer.start()
        cls._started = True

    @classmethod
    async def stop(cls) -> None:
        if cls._producer is not None and cls._started:
            await cls._producer.stop()
        cls._producer = None
        cls._started = False

    @classmethod
    async def send(cls, topic: str, value: dict[str, Any], key: Optional[str] = None) -> None:
        if not cls._started or cls._producer is None:
            logger.debug(f"Kafka producer not running, dropping message for {topic}")
            return
        await cls._producer.send_and_wait(topic, value=value, key=key)


async def publish_event(topic: str, event: EventEnvelope, key: Optional[str] = None) -> None:
    """Publish an event envelope to ``topic``."""
    await KafkaProducer.send(topic, event.model_dump(mode="json"), key=key)
    logger.debug(f"Published {event.event_type.value} to {topic}")


class KafkaConsumer:
    """Dispatches messages from subscribed topics to registered handlers."""

    _handlers: dict[str, list[EventHandler]] = {}
    _consumer: Optional[AIOKafkaConsumer] = None
    _task: Optional[asyncio.Task] = None

    @classmethod
    def register_handler(cls, topic: str, handler: EventHandler) -> None:
        cls._handlers.setdefault(topic, []).append(handler)

    @classmethod
    def dispatch(cls, topic: str, payload: dict[str, Any]) -> None:
        for handler in cls._handlers.get(topic, []):
            try:
                handler(payload)
            except Exception as e:
                logger.error(f"Handler {handler.__name__} failed for {topic}: {e}", exc_info=True)

    @classmethod
    async def start(cls) -> None:
        if not settings.KAFKA_ENABLED or not cls._handlers:
            logger.info("Kafka disabled or no handlers registered, consumer not started")
            return
        cls._consumer = AIOKafkaConsumer(
            *cls._handlers.keys(),
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id=settings.KAFKA_CONSUMER_GROUP,
            client_id=settings.KAFKA_CLIENT_ID,
            value_deserializer=lambda raw: json.loads(raw.decode("utf-8")),
            enable_auto_commit=True,
            auto_offset_reset="earliest",
        )
        await cls._consumer.start()
        cls._task = asyncio.create_task(cls._consume())

    @classmethod
    async def _consume(cls) -> None:
        assert cls._consumer is not None
        async for message in cls._consumer:
            cls.dispatch(message.topic, message.value)

    @classmethod
    async def stop(cls) -> None:
        if cls._task is not None:
            cls._task.cancel()
            try:
                await cls._task
            except asyncio.CancelledError:
                pass
            cls._task = None
        if cls._consumer is not None:
            await cls._consumer.stop()
            cls._consumer = None


async def publish_best_effort(topic: str, event: EventEnvelope, key: Optional[str] = None) -> None:
    """Publish an event, logging instead of raising on failure."""
    try:
        await publish_event(topic, event, key=key)
    except Exception as e:
        logger.warning(f"Failed to publish {event.event_type.value} event to {topic}: {e}")
