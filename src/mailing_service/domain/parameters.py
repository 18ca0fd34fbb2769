"""
Mailing Service - Substitution Sets.

One typed model per notification kind, listing the exact substitution keys its
provider template expects. Field aliases are the replacement tags; field order
is the order parameters are emitted in.

Architecture Layer: Domain
Principles: Type Safety, Explicit Contracts
"""
from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from .messages import TemplateParameter


class SubstitutionSet(BaseModel):
    """Base class for per-notification substitution parameters."""
    version: ClassVar[int] = 1

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_template_parameters(self) -> list[TemplateParameter]:
        return [
            TemplateParameter(replacement_tag=tag, value=value)
            for tag, value in self.model_dump(by_alias=True).items()
        ]

    @classmethod
    def replacement_tags(cls) -> list[str]:
        return [field.alias or name for name, field in cls.model_fields.items()]


class ResetPasswordSubstitutions(SubstitutionSet):
    reset_password_url: str = Field(..., min_length=1, alias="resetPasswordUrl")


class ActivateAccountSubstitutions(SubstitutionSet):
    url: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)


class RemarkSubstitutions(SubstitutionSet):
    """Fields shared by every remark notification."""
    remark_id: str = Field(..., min_length=1, alias="remarkId")
    category: str = Field(..., min_length=1)
    address: str = ""


class RemarkCreatedSubstitutions(RemarkSubstitutions):
    username: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class RemarkStateChangedSubstitutions(RemarkSubstitutions):
    username: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class CommentAddedToRemarkSubstitutions(RemarkSubstitutions):
    username: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)
    comment: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class PhotosAddedToRemarkSubstitutions(RemarkSubstitutions):
    url: str = Field(..., min_length=1)
