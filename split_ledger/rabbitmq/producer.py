import json
import logging
from typing import Dict, Any, Optional
import pika
from split_ledger.core.config import settings

logger = logging.getLogger(__name__)


class RabbitMQProducer:
    """Publishes ledger events to RabbitMQ"""

    def __init__(self, url: Optional[str] = None, exchange: Optional[str] = None):
        self.url = url or settings.RABBITMQ_URL
        self.exchange = exchange or settings.LEDGER_EVENTS_EXCHANGE
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel = None

    def connect(self) -> None:
        """Establish connection to RabbitMQ and declare the events exchange"""
        try:
            self.connection = pika.BlockingConnection(pika.URLParameters(self.url))
            self.channel = self.connection.channel()
            self.channel.exchange_declare(exchange=self.exchange, exchange_type="topic", durable=True)
            logger.info("RabbitMQ producer connected successfully")
        except Exception as e:
            logger.error(f"Failed to connect RabbitMQ producer: {e}")
            raise

    def disconnect(self) -> None:
        """Close RabbitMQ connection"""
        if self.channel and not self.channel.is_closed:
            self.channel.close()
        if self.connection and not self.connection.is_closed:
            self.connection.close()
        logger.info("RabbitMQ producer disconnected")

    def publish_ledger_event(self, event_type: str, message: Dict[str, Any]) -> bool:
        """
        Publish a ledger event message

        Args:
            event_type: Event name, used as routing key (e.g. "debt.settled")
            message: JSON-serializable event body

        Returns:
            bool: True if message published successfully, False otherwise
        """
        try:
            if not self.connection or self.connection.is_closed:
                self.connect()

            self.channel.basic_publish(
                exchange=self.exchange,
                routing_key=event_type,
                body=json.dumps(message),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Make message persistent
                    content_type='application/json',
                    type=event_type
                )
            )

            logger.info(f"Published ledger event: {event_type}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish ledger event {event_type}: {e}")
            return False


# Global producer instance
_rabbitmq_producer: Optional[RabbitMQProducer] = None


def get_rabbitmq_producer() -> RabbitMQProducer:
    """Get or create RabbitMQ producer instance"""
    global _rabbitmq_producer
    if _rabbitmq_producer is None:
        producer = RabbitMQProducer()
        producer.connect()
        _rabbitmq_producer = producer
    return _rabbitmq_producer


def close_rabbitmq_producer() -> None:
    """Close RabbitMQ producer connection"""
    global _rabbitmq_producer
    if _rabbitmq_producer:
        _rabbitmq_producer.disconnect()
        _rabbitmq_producer = None
