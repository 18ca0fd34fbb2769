"""Mailing Service Commands - Pydantic models for inbound queue commands."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
import structlog

logger = structlog.get_logger(__name__)


class MailingCommand(BaseModel):
    """Base class for all mailing commands. Accepts snake_case or camelCase keys."""
    command_type: str
    command_id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize command to dictionary for Kafka."""
        return self.model_dump(mode="json")


class SendResetPasswordEmail(MailingCommand):
    command_type: Literal["mailing.reset_password"] = "mailing.reset_password"
    email: str
    endpoint: str
    token: str
    culture: str = ""


class SendActivateAccountEmail(MailingCommand):
    command_type: Literal["mailing.activate_account"] = "mailing.activate_account"
    email: str
    username: str
    endpoint: str
    token: str
    culture: str = ""


class SendSupportEmail(MailingCommand):
    """Contact form message from a user to the support mailbox."""
    command_type: Literal["mailing.support"] = "mailing.support"
    email: str
    name: str | None = None
    title: str = ""
    message: str


class RemarkCommand(MailingCommand):
    email: str
    remark_id: UUID
    category: str
    address: str = ""
    culture: str = ""
    url: str


class SendRemarkCreatedEmail(RemarkCommand):
    command_type: Literal["mailing.remark_created"] = "mailing.remark_created"
    username: str
    date: datetime


class SendRemarkStateChangedEmail(RemarkCommand):
    command_type: Literal["mailing.remark_state_changed"] = "mailing.remark_state_changed"
    username: str
    date: datetime
    state: str


class SendCommentAddedToRemarkEmail(RemarkCommand):
    command_type: Literal["mailing.comment_added_to_remark"] = "mailing.comment_added_to_remark"
    username: str
    date: datetime
    comment: str


class SendPhotosAddedToRemarkEmail(RemarkCommand):
    command_type: Literal["mailing.photos_added_to_remark"] = "mailing.photos_added_to_remark"


COMMAND_REGISTRY: dict[str, type[MailingCommand]] = {
    "mailing.reset_password": SendResetPasswordEmail,
    "mailing.activate_account": SendActivateAccountEmail,
    "mailing.support": SendSupportEmail,
    "mailing.remark_created": SendRemarkCreatedEmail,
    "mailing.remark_state_changed": SendRemarkStateChangedEmail,
    "mailing.comment_added_to_remark": SendCommentAddedToRemarkEmail,
    "mailing.photos_added_to_remark": SendPhotosAddedToRemarkEmail,
}


def deserialize_command(data: dict[str, Any]) -> MailingCommand | None:
    """Deserialize a command from a dictionary using the registry.

    Returns None for unknown command types. Raises ValueError when the type
    is missing and pydantic.ValidationError when required fields are absent.
    """
    command_type = data.get("command_type") or data.get("commandType")
    if not command_type:
        raise ValueError("Missing command_type in command data")
    command_class = COMMAND_REGISTRY.get(command_type)
    if not command_class:
        logger.warning("unknown_command_type", command_type=command_type)
        return None
    return command_class.model_validate(data)
