"""
SQS delivery into the engine, either as Lambda-style record batches or by
long-polling the queue.
"""
import json
import logging

from .errors import UnknownStage
from .jobs import StageMessage

logger = logging.getLogger(__name__)


def parse_body(raw: str, receive_count: int | None = None) -> StageMessage:
    message = StageMessage.from_body(json.loads(raw))
    if receive_count and receive_count > message.attempt:
        message = StageMessage(message.type, message.job_id, receive_count)
    return message


def handle_event(event: dict, engine) -> dict:
    """
    Handle a batch of queue records. A failing record raises, which fails the
    batch and hands redelivery back to the queue.
    """
    for rec in event.get("Records") or []:
        try:
            message = parse_body(rec["body"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping unparseable record %s", rec.get("messageId"))
            continue

        try:
            engine.handle(message)
        except UnknownStage:
            logger.warning("Unknown message type: %s", message.type)
        except Exception:
            logger.exception("Stage %s failed for %s", message.type, message.job_id)
            raise
    return {"ok": True}


def poll_once(client, queue_url: str, engine, *, wait_seconds: int = 20, visibility_timeout: int = 120) -> int:
    """
    Receive one batch and handle it. A message is deleted only once it has
    been handled (or can never be); failures stay on the queue so its
    visibility timeout and redrive policy take over.
    """
    resp = client.receive_message(
        QueueUrl=queue_url,
        MaxNumberOfMessages=10,
        WaitTimeSeconds=wait_seconds,
        VisibilityTimeout=visibility_timeout,
        AttributeNames=["ApproximateReceiveCount"],
    )
    handled = 0
    for msg in resp.get("Messages", []):
        receipt = msg["ReceiptHandle"]
        count = int(msg.get("Attributes", {}).get("ApproximateReceiveCount", "1"))
        try:
            message = parse_body(msg["Body"], count)
        except (KeyError, TypeError, ValueError):
            logger.warning("Deleting unparseable message %s", msg.get("MessageId"))
            client.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt)
            continue

        try:
            engine.handle(message)
        except UnknownStage:
            logger.warning("Deleting message with unknown type: %s", message.type)
            client.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt)
            continue
        except Exception:
            logger.exception(
                "Stage %s failed for %s (attempt %s); leaving it for redelivery",
                message.type, message.job_id, message.attempt,
            )
            continue

        client.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt)
        handled += 1
    return handled
