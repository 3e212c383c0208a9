"""Work queue: message codec and the SQS-backed implementation."""

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import boto3
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from luxury_scraper.errors import MessageFormatError
from luxury_scraper.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)


class QueueMessage(BaseModel):
    """
    One listing URL to process.

    Wire format is JSON ``{"url", "urlNumber", "timestamp"}``; a bare URL
    string body is accepted on decode.
    """

    model_config = ConfigDict(populate_by_name=True)

    url: str
    sequence_number: int | None = Field(None, alias="urlNumber")
    enqueued_at: datetime = Field(default_factory=datetime.now, alias="timestamp")

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def decode(cls, body: str) -> "QueueMessage":
        """Parse a message body; raises MessageFormatError when no URL is found."""
        text = (body or "").strip()
        if text.startswith("http://") or text.startswith("https://"):
            return cls(url=text)

        try:
            data = json.loads(text)
            return cls.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise MessageFormatError(f"Invalid message body: {text[:200]!r}") from e

    @property
    def deduplication_id(self) -> str:
        """Stable id so a FIFO queue drops re-sends of the same URL."""
        return hashlib.sha256(self.url.encode("utf-8")).hexdigest()


@dataclass
class ReceivedMessage:
    """A delivered message plus the handle needed to delete it."""

    receipt_handle: str
    body: str
    message_id: str | None = None
    receive_count: int = 1


class WorkQueue(Protocol):
    """At-least-once FIFO queue."""

    async def send(self, message: QueueMessage) -> None: ...

    async def receive(self) -> ReceivedMessage | None: ...

    async def delete(self, received: ReceivedMessage) -> None: ...


class SqsWorkQueue:
    """
    Work queue on Amazon SQS.

    boto3 is blocking, so every call runs in a worker thread and goes
    through the retry policy.
    """

    def __init__(
        self,
        queue_url: str,
        region: str,
        group_id: str = "scraper-group",
        visibility_timeout: int = 300,
        wait_time_seconds: int = 10,
        retry: RetryPolicy | None = None,
        client=None,
    ):
        self.queue_url = queue_url
        self.group_id = group_id
        self.visibility_timeout = visibility_timeout
        self.wait_time_seconds = wait_time_seconds
        self.retry = retry or RetryPolicy()
        self.client = client or boto3.client("sqs", region_name=region)

    @property
    def is_fifo(self) -> bool:
        return self.queue_url.endswith(".fifo")

    async def send(self, message: QueueMessage) -> None:
        params = {"QueueUrl": self.queue_url, "MessageBody": message.encode()}
        if self.is_fifo:
            params["MessageGroupId"] = self.group_id
            params["MessageDeduplicationId"] = message.deduplication_id

        await self.retry.run(
            lambda: asyncio.to_thread(self.client.send_message, **params),
            description=f"send {message.url}",
        )

    async def receive(self) -> ReceivedMessage | None:
        response = await self.retry.run(
            lambda: asyncio.to_thread(
                self.client.receive_message,
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
                VisibilityTimeout=self.visibility_timeout,
                WaitTimeSeconds=self.wait_time_seconds,
                AttributeNames=["ApproximateReceiveCount"],
            ),
            description="receive",
        )

        messages = response.get("Messages") or []
        if not messages:
            return None

        raw = messages[0]
        attributes = raw.get("Attributes") or {}
        return ReceivedMessage(
            receipt_handle=raw["ReceiptHandle"],
            body=raw.get("Body", ""),
            message_id=raw.get("MessageId"),
            receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
        )

    async def delete(self, received: ReceivedMessage) -> None:
        await self.retry.run(
            lambda: asyncio.to_thread(
                self.client.delete_message,
                QueueUrl=self.queue_url,
                ReceiptHandle=received.receipt_handle,
            ),
            description="delete",
        )
