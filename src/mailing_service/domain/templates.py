"""
Mailing Service - Email Templates.

Template definitions, store implementations and culture-based resolution.
Templates live at the email provider; this module only knows which provider
template serves a given codename and culture.

Architecture Layer: Domain
Principles: Repository Pattern, Explicit Results, Immutability
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
import structlog

logger = structlog.get_logger(__name__)


class MailingServiceError(Exception):
    """Base exception for mailing service errors."""


class TemplateNotFoundError(MailingServiceError):
    """Raised when neither the requested nor the default culture has a template."""
    def __init__(self, codename: str) -> None:
        self.codename = codename
        super().__init__(f"Email template: '{codename}' has not been found.")


class EmailTemplateCodename(str, Enum):
    """Codenames of the templates used by the notification operations."""
    RESET_PASSWORD = "ResetPassword"
    ACTIVATE_ACCOUNT = "ActivateAccount"
    REMARK_CREATED = "RemarkCreated"
    REMARK_STATE_CHANGED = "RemarkStateChanged"
    COMMENT_ADDED_TO_REMARK = "CommentAddedToRemark"
    PHOTOS_ADDED_TO_REMARK = "PhotosAddedToRemark"


class EmailTemplate(BaseModel):
    """Provider-hosted email template for one codename and culture."""
    codename: str = Field(..., min_length=1, max_length=100)
    culture: str = Field(..., min_length=2, max_length=20)
    subject: str = Field(..., min_length=1, max_length=500)
    provider_template_id: str = Field(..., min_length=1, max_length=100)

    model_config = ConfigDict(frozen=True)

    @field_validator("codename", "culture", "provider_template_id", mode="before")
    @classmethod
    def strip_identifiers(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @property
    def key(self) -> tuple[str, str]:
        return self.codename, self.culture


class TemplateLookup(BaseModel):
    """Result of a store query: either a template or a not-found marker."""
    codename: str
    culture: str
    template: EmailTemplate | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def found(self) -> bool:
        return self.template is not None

    @classmethod
    def of(cls, template: EmailTemplate) -> TemplateLookup:
        return cls(codename=template.codename, culture=template.culture, template=template)

    @classmethod
    def missing(cls, codename: str, culture: str) -> TemplateLookup:
        return cls(codename=codename, culture=culture)


class TemplateStore(ABC):
    """Read access to template definitions, keyed by (codename, culture)."""

    @abstractmethod
    async def get_by_codename_and_culture(self, codename: str, culture: str) -> TemplateLookup:
        """Look up a template by exact codename and culture."""

    @abstractmethod
    async def upsert(self, template: EmailTemplate) -> None:
        """Insert or replace the template for its (codename, culture) pair."""


class InMemoryTemplateStore(TemplateStore):
    """Dictionary-backed store for tests and development."""

    def __init__(self, templates: list[EmailTemplate] | None = None) -> None:
        self._templates: dict[tuple[str, str], EmailTemplate] = {}
        for template in templates or []:
            self._templates[template.key] = template

    async def get_by_codename_and_culture(self, codename: str, culture: str) -> TemplateLookup:
        template = self._templates.get((codename, culture))
        if template is None:
            return TemplateLookup.missing(codename, culture)
        return TemplateLookup.of(template)

    async def upsert(self, template: EmailTemplate) -> None:
        self._templates[template.key] = template

    def list_templates(self) -> list[EmailTemplate]:
        return list(self._templates.values())


class TemplateResolver:
    """
    Resolves the template for a codename and culture.

    Tries the requested culture first and then the configured default culture.
    No partial-locale matching is attempted: "en-GB" never matches "en".
    """
    def __init__(
        self,
        store: TemplateStore,
        default_culture: str,
        logger: Any = None,
    ) -> None:
        self._store = store
        self._default_culture = default_culture
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def default_culture(self) -> str:
        return self._default_culture

    async def resolve(self, codename: str | EmailTemplateCodename, culture: str | None) -> EmailTemplate:
        """
        Resolve a template, falling back to the default culture.

        Args:
            codename: Template codename
            culture: Requested culture code, blank means the default culture

        Returns:
            The template for the requested culture, or for the default culture

        Raises:
            TemplateNotFoundError: If neither culture has the template
        """
        name = codename.value if isinstance(codename, EmailTemplateCodename) else codename
        # A blank culture goes straight to the default
        culture = (culture or "").strip() or self._default_culture

        lookup = await self._store.get_by_codename_and_culture(name, culture)
        if lookup.found:
            return lookup.template

        if culture != self._default_culture:
            lookup = await self._store.get_by_codename_and_culture(name, self._default_culture)
            if lookup.found:
                self._logger.debug("template_culture_fallback", codename=name,
                                   requested_culture=culture, culture=self._default_culture)
                return lookup.template

        self._logger.warning("template_not_found", codename=name, culture=culture,
                             default_culture=self._default_culture)
        raise TemplateNotFoundError(name)
