# common/events.py
"""
Audit log events sent from the services to the logs service over RabbitMQ.

Publishing is fire-and-forget: services schedule `publish_log_event` as a
background task after the response is sent, and a broker that is down only
costs a warning in the service's own log.
"""
import enum
import json
import logging
from typing import Optional

import aio_pika

from common.settings import get_settings

logger = logging.getLogger(__name__)

LOG_EVENTS_QUEUE = "log_events"


class ServiceName(str, enum.Enum):
    users = "UsersService"
    products = "ProductsService"
    payments = "PaymentsService"
    logs = "LogsService"


class LogLevel(str, enum.Enum):
    trace = "TRACE"
    debug = "DEBUG"
    info = "INFO"
    warning = "WARNING"
    error = "ERROR"
    critical = "CRITICAL"


def build_log_event(
    service: ServiceName,
    level: LogLevel,
    message: str,
    username: Optional[str] = None,
) -> dict:
    return {
        "service": service.value,
        "level": level.value,
        "message": message,
        "username": username,
    }


async def publish_log_event(
    service: ServiceName,
    level: LogLevel,
    message: str,
    username: Optional[str] = None,
) -> None:
    rabbitmq_url = get_settings().RABBITMQ_URL
    if not rabbitmq_url:
        logger.debug("RABBITMQ_URL not set, dropping log event: %s", message)
        return

    body = json.dumps(build_log_event(service, level, message, username)).encode()
    try:
        connection = await aio_pika.connect_robust(rabbitmq_url)
    except (aio_pika.exceptions.AMQPConnectionError, OSError) as exc:
        logger.warning("RabbitMQ not available, log event not sent: %s", exc)
        return

    async with connection:
        channel = await connection.channel()
        await channel.declare_queue(LOG_EVENTS_QUEUE, durable=True)
        await channel.default_exchange.publish(
            aio_pika.Message(body=body, content_type="application/json"),
            routing_key=LOG_EVENTS_QUEUE,
        )
