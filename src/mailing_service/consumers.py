"""
Mailing Service - Kafka Command Consumer.

Consumes mailing commands from Kafka and dispatches each one to the matching
notification operation. Validation and template errors are terminal for a
message; delivery and infrastructure errors rewind the partition so the message
is redelivered.
"""
from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import ValidationError
import structlog

from .commands import (
    MailingCommand,
    SendActivateAccountEmail,
    SendCommentAddedToRemarkEmail,
    SendPhotosAddedToRemarkEmail,
    SendRemarkCreatedEmail,
    SendRemarkStateChangedEmail,
    SendResetPasswordEmail,
    SendSupportEmail,
    deserialize_command,
)
from .config import KafkaConfig
from .domain import (
    DeliveryError,
    InvalidParameterError,
    NotificationService,
    TemplateNotFoundError,
)

logger = structlog.get_logger(__name__)

CommandHandler = Callable[[Any], Awaitable[Any]]
Message = tuple[str, int, int, dict[str, Any]]


class ProcessingStatus(str, Enum):
    """Status of command processing."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    RETRY = "RETRY"
    SKIP = "SKIP"


@dataclass
class ProcessingResult:
    """Result of processing a command."""

    status: ProcessingStatus
    command_id: UUID | None = None
    error: str | None = None


@dataclass
class ConsumerMetrics:
    """Metrics for consumer monitoring."""

    messages_received: int = 0
    messages_processed: int = 0
    messages_failed: int = 0
    messages_skipped: int = 0
    messages_retried: int = 0
    last_message_at: datetime | None = None

    def record(self, status: ProcessingStatus) -> None:
        self.messages_received += 1
        self.last_message_at = datetime.now(timezone.utc)
        if status == ProcessingStatus.SUCCESS:
            self.messages_processed += 1
        elif status == ProcessingStatus.FAILED:
            self.messages_failed += 1
        elif status == ProcessingStatus.SKIP:
            self.messages_skipped += 1
        else:
            self.messages_retried += 1


class KafkaConsumerAdapter(ABC):
    """Abstract Kafka consumer adapter."""

    @abstractmethod
    async def start(self, topics: list[str]) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    async def poll(self, timeout_ms: int = 1000) -> list[Message]: ...

    @abstractmethod
    async def commit(self, topic: str, partition: int, offset: int) -> None: ...

    @abstractmethod
    async def seek(self, topic: str, partition: int, offset: int) -> None: ...


class AIOKafkaConsumerAdapter(KafkaConsumerAdapter):
    """aiokafka consumer implementation."""

    def __init__(self, config: KafkaConfig) -> None:
        self._config = config
        self._consumer: Any = None

    async def start(self, topics: list[str]) -> None:
        from aiokafka import AIOKafkaConsumer

        self._consumer = AIOKafkaConsumer(
            *topics,
            bootstrap_servers=self._config.bootstrap_servers,
            client_id=self._config.client_id,
            group_id=self._config.consumer_group_id,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
            value_deserializer=_decode_value,
        )
        await self._consumer.start()
        logger.info("kafka_consumer_started", group_id=self._config.consumer_group_id,
                    topics=topics)

    async def stop(self) -> None:
        if self._consumer:
            await self._consumer.stop()
            logger.info("kafka_consumer_stopped")

    async def poll(self, timeout_ms: int = 1000) -> list[Message]:
        if not self._consumer:
            return []
        messages: list[Message] = []
        data = await self._consumer.getmany(timeout_ms=timeout_ms)
        for tp, records in data.items():
            for record in records:
                messages.append((tp.topic, tp.partition, record.offset, record.value))
        return messages

    async def commit(self, topic: str, partition: int, offset: int) -> None:
        from aiokafka import TopicPartition

        await self._consumer.commit({TopicPartition(topic, partition): offset + 1})

    async def seek(self, topic: str, partition: int, offset: int) -> None:
        from aiokafka import TopicPartition

        self._consumer.seek(TopicPartition(topic, partition), offset)


def _decode_value(raw: bytes | None) -> dict[str, Any]:
    if raw is None:
        return {}
    try:
        value = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {}
    return value if isinstance(value, dict) else {}


class MockKafkaConsumerAdapter(KafkaConsumerAdapter):
    """Mock consumer for testing without Kafka."""

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._committed: dict[tuple[str, int], int] = {}
        self._topics: list[str] = []
        self._started = False
        self._poll_index = 0

    async def start(self, topics: list[str]) -> None:
        self._topics = topics
        self._started = True

    async def stop(self) -> None:
        self._started = False

    async def poll(self, timeout_ms: int = 1000) -> list[Message]:
        if not self._started or self._poll_index >= len(self._messages):
            await asyncio.sleep(timeout_ms / 1000)
            return []
        batch = self._messages[self._poll_index:]
        self._poll_index = len(self._messages)
        return batch

    async def commit(self, topic: str, partition: int, offset: int) -> None:
        self._committed[(topic, partition)] = offset + 1

    async def seek(self, topic: str, partition: int, offset: int) -> None:
        for index, (t, p, o, _) in enumerate(self._messages):
            if (t, p, o) == (topic, partition, offset):
                self._poll_index = index
                return

    def add_message(self, topic: str, partition: int, offset: int, value: dict[str, Any]) -> None:
        """Add message to mock queue."""
        self._messages.append((topic, partition, offset, value))

    def get_committed_offsets(self) -> dict[tuple[str, int], int]:
        return self._committed.copy()


class MailingCommandConsumer:
    """
    Consumes mailing commands and triggers notifications.

    Each command type maps to one NotificationService operation.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        config: KafkaConfig | None = None,
        adapter: KafkaConsumerAdapter | None = None,
        max_redeliveries: int = 5,
        retry_backoff_seconds: float = 1.0,
        logger: Any = None,
    ) -> None:
        self._service = notification_service
        self._config = config or KafkaConfig()
        self._adapter = adapter or AIOKafkaConsumerAdapter(self._config)
        self._max_redeliveries = max_redeliveries
        self._retry_backoff_seconds = retry_backoff_seconds
        self._logger = logger or structlog.get_logger(__name__)
        self._metrics = ConsumerMetrics()
        self._redeliveries: dict[tuple[str, int, int], int] = {}
        self._running = False
        self._consume_task: asyncio.Task | None = None
        self._handlers: dict[type[MailingCommand], CommandHandler] = {
            SendResetPasswordEmail: self._handle_reset_password,
            SendActivateAccountEmail: self._handle_activate_account,
            SendSupportEmail: self._handle_support,
            SendRemarkCreatedEmail: self._handle_remark_created,
            SendRemarkStateChangedEmail: self._handle_remark_state_changed,
            SendCommentAddedToRemarkEmail: self._handle_comment_added,
            SendPhotosAddedToRemarkEmail: self._handle_photos_added,
        }

    @property
    def metrics(self) -> ConsumerMetrics:
        return self._metrics

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start consuming mailing commands."""
        await self._adapter.start([self._config.topic])
        self._running = True
        self._consume_task = asyncio.create_task(self._consume_loop())
        self._logger.info("mailing_command_consumer_started", topic=self._config.topic)

    async def stop(self) -> None:
        """Stop consuming commands."""
        self._running = False
        if self._consume_task:
            self._consume_task.cancel()
            try:
                await self._consume_task
            except asyncio.CancelledError:
                pass
        await self._adapter.stop()
        self._logger.info("mailing_command_consumer_stopped")

    async def _consume_loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._logger.error("consumer_loop_error", error=str(e))
                await asyncio.sleep(1)

    async def poll_once(self) -> list[ProcessingResult]:
        """Poll one batch and process it in order."""
        messages = await self._adapter.poll(timeout_ms=self._config.poll_timeout_ms)
        results: list[ProcessingResult] = []
        rewound: set[tuple[str, int]] = set()
        for topic, partition, offset, value in messages:
            if (topic, partition) in rewound:
                continue
            result = await self.process_message(topic, partition, offset, value)
            results.append(result)
            if result.status == ProcessingStatus.RETRY:
                rewound.add((topic, partition))
                await self._adapter.seek(topic, partition, offset)
                await asyncio.sleep(self._retry_backoff_seconds)
            else:
                await self._adapter.commit(topic, partition, offset)
        return results

    async def process_message(
        self, topic: str, partition: int, offset: int, value: dict[str, Any]
    ) -> ProcessingResult:
        """Process a single message and classify the outcome."""
        result = await self._process(topic, partition, offset, value)
        key = (topic, partition, offset)
        if result.status == ProcessingStatus.RETRY:
            attempts = self._redeliveries.get(key, 0) + 1
            if attempts > self._max_redeliveries:
                self._logger.error("command_dropped_after_redeliveries", topic=topic,
                                   partition=partition, offset=offset, attempts=attempts,
                                   error=result.error)
                self._redeliveries.pop(key, None)
                result = ProcessingResult(ProcessingStatus.FAILED, result.command_id, result.error)
            else:
                self._redeliveries[key] = attempts
        else:
            self._redeliveries.pop(key, None)
        self._metrics.record(result.status)
        return result

    async def _process(
        self, topic: str, partition: int, offset: int, value: dict[str, Any]
    ) -> ProcessingResult:
        try:
            command = deserialize_command(value)
        except (ValidationError, ValueError) as e:
            self._logger.warning("malformed_command_skipped", topic=topic, partition=partition,
                                 offset=offset, error=str(e))
            return ProcessingResult(ProcessingStatus.SKIP, error=str(e))
        if command is None:
            return ProcessingResult(ProcessingStatus.SKIP)

        handler = self._handlers.get(type(command))
        if handler is None:
            self._logger.warning("command_handler_missing", command_type=command.command_type)
            return ProcessingResult(ProcessingStatus.SKIP, command.command_id)

        log = self._logger.bind(command_type=command.command_type,
                                command_id=str(command.command_id))
        try:
            await handler(command)
        except (InvalidParameterError, TemplateNotFoundError) as e:
            log.error("command_rejected", error=str(e))
            return ProcessingResult(ProcessingStatus.FAILED, command.command_id, str(e))
        except DeliveryError as e:
            if not e.is_retriable:
                log.error("command_delivery_rejected", error=str(e), status_code=e.status_code)
                return ProcessingResult(ProcessingStatus.FAILED, command.command_id, str(e))
            log.warning("command_delivery_failed", error=str(e), status_code=e.status_code)
            return ProcessingResult(ProcessingStatus.RETRY, command.command_id, str(e))
        except Exception as e:
            log.exception("command_processing_error", error=str(e))
            return ProcessingResult(ProcessingStatus.RETRY, command.command_id, str(e))

        log.info("command_processed")
        return ProcessingResult(ProcessingStatus.SUCCESS, command.command_id)

    async def _handle_reset_password(self, command: SendResetPasswordEmail) -> None:
        await self._service.send_reset_password(
            email=command.email,
            endpoint=command.endpoint,
            token=command.token,
            culture=command.culture,
        )

    async def _handle_activate_account(self, command: SendActivateAccountEmail) -> None:
        await self._service.send_activate_account(
            email=command.email,
            username=command.username,
            endpoint=command.endpoint,
            token=command.token,
            culture=command.culture,
        )

    async def _handle_support(self, command: SendSupportEmail) -> None:
        await self._service.send_support(
            email=command.email,
            name=command.name,
            title=command.title,
            message=command.message,
        )

    async def _handle_remark_created(self, command: SendRemarkCreatedEmail) -> None:
        await self._service.send_remark_created(
            email=command.email,
            remark_id=command.remark_id,
            category=command.category,
            address=command.address,
            username=command.username,
            date=command.date,
            culture=command.culture,
            url=command.url,
        )

    async def _handle_remark_state_changed(self, command: SendRemarkStateChangedEmail) -> None:
        await self._service.send_remark_state_changed(
            email=command.email,
            remark_id=command.remark_id,
            category=command.category,
            address=command.address,
            username=command.username,
            date=command.date,
            culture=command.culture,
            url=command.url,
            state=command.state,
        )

    async def _handle_comment_added(self, command: SendCommentAddedToRemarkEmail) -> None:
        await self._service.send_comment_added_to_remark(
            email=command.email,
            remark_id=command.remark_id,
            category=command.category,
            address=command.address,
            username=command.username,
            date=command.date,
            culture=command.culture,
            url=command.url,
            comment=command.comment,
        )

    async def _handle_photos_added(self, command: SendPhotosAddedToRemarkEmail) -> None:
        await self._service.send_photos_added_to_remark(
            email=command.email,
            remark_id=command.remark_id,
            category=command.category,
            address=command.address,
            culture=command.culture,
            url=command.url,
        )
