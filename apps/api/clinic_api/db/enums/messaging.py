"""Outbound email and WhatsApp enums."""

from enum import Enum


class EmailStatus(str, Enum):
    """Status of an outbound email row."""

    QUEUED = "queued"  # handed to Mailgun with a future delivery time
    SENT = "sent"
    FAILED = "failed"


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class WhatsAppMessageStatus(str, Enum):
    """Status of an outbound WhatsApp message row."""

    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"
