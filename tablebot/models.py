"""Pydantic models for chat messages.

IncomingMessage is what the dispatcher and handlers see. The envelope
models mirror the JSON pushed by the chat REST API's receive socket and
are only used by the transport to build IncomingMessage values.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IncomingMessage(BaseModel):
    """A chat message addressed to the bot."""

    model_config = ConfigDict(frozen=True)

    author_id: str = Field(..., description="Identity of the sender")
    channel: str = Field(..., description="Where replies should go")
    content: str = Field(default="", description="Raw message text")
    timestamp: int = 0

    @field_validator("author_id", "channel", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class GroupInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    group_id: str = Field(..., alias="groupId")


class DataMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    timestamp: int = 0
    group_info: Optional[GroupInfo] = Field(default=None, alias="groupInfo")


class Envelope(BaseModel):
    """One received envelope from the chat API."""

    model_config = ConfigDict(populate_by_name=True)

    source: Optional[str] = None
    source_number: Optional[str] = Field(default=None, alias="sourceNumber")
    source_uuid: Optional[str] = Field(default=None, alias="sourceUuid")
    timestamp: int = 0
    data_message: Optional[DataMessage] = Field(default=None, alias="dataMessage")

    def to_message(self) -> Optional[IncomingMessage]:
        """Build an IncomingMessage, or None if this carries no text."""
        sender = self.source or self.source_number or self.source_uuid
        if not sender or self.data_message is None:
            return None
        text = self.data_message.message
        if not text or not text.strip():
            return None
        group = self.data_message.group_info
        return IncomingMessage(
            author_id=sender,
            channel=group.group_id if group else sender,
            content=text,
            timestamp=self.timestamp,
        )


class ReceivedPayload(BaseModel):
    envelope: Envelope
    account: Optional[str] = None
