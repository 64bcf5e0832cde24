# logs_service/app/consumer.py
"""
RabbitMQ consumer that turns log events published by the other services into
LogEntry rows.

Each message body is a JSON object shaped like the POST /api/logs payload plus
an optional "username". Messages that cannot be parsed or validated are logged
and acknowledged so they do not loop back onto the queue.
"""
import asyncio
import json
import logging

import aio_pika
import pydantic

from common.events import LOG_EVENTS_QUEUE
from logs_service.app.db.database import get_session
from logs_service.app.db.functions import create_log
from logs_service.app.db.schemas import LogEntryCreate

logger = logging.getLogger(__name__)

RETRY_DELAY_SECONDS = 5


async def store_log_event(payload: dict):
    username = payload.pop("username", None)
    data = LogEntryCreate.model_validate(payload)
    async with get_session() as db:
        return await create_log(db, data, username=username)


async def handle_message(message: aio_pika.abc.AbstractIncomingMessage) -> None:
    async with message.process():
        try:
            payload = json.loads(message.body.decode())
            if not isinstance(payload, dict):
                raise ValueError("log event must be a JSON object")
            await store_log_event(payload)
        except (ValueError, pydantic.ValidationError) as exc:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors too
            logger.warning("Dropping malformed log event: %s", exc)


async def consume_messages(rabbitmq_url: str) -> None:
    """Listen on the log events queue until cancelled, reconnecting when the broker is down."""
    while True:
        try:
            connection = await aio_pika.connect_robust(rabbitmq_url)
            async with connection:
                channel = await connection.channel()
                await channel.set_qos(prefetch_count=10)
                queue = await channel.declare_queue(LOG_EVENTS_QUEUE, durable=True)
                await queue.consume(handle_message)
                logger.info("Listening for log events on %s", LOG_EVENTS_QUEUE)
                await asyncio.Future()
        except (aio_pika.exceptions.AMQPConnectionError, OSError) as exc:
            logger.warning("RabbitMQ not available (%s). Retrying in %s seconds", exc, RETRY_DELAY_SECONDS)
            await asyncio.sleep(RETRY_DELAY_SECONDS)
