from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LocaleMetadata(BaseModel):
    """Per-locale attributes of a page."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    title: str
    description: str = ""
    keywords: str = ""
    permalink: str
    content_key: Optional[str] = Field(default=None, alias="contentKey")
    """Key of the content document; ``None`` until the locale is authored."""


class PageContract(LocaleMetadata):
    """Flattened, locale-resolved view of a page.

    This is also the stored shape of a page when localization is disabled.
    """

    key: str


class PageRecord(BaseModel):
    """Stored, multi-locale page container."""

    model_config = ConfigDict(extra="forbid")

    key: str
    locales: Dict[str, LocaleMetadata]

    @field_validator("locales")
    @classmethod
    def _at_least_one_locale(cls, value: Dict[str, LocaleMetadata]) -> Dict[str, LocaleMetadata]:
        if not value:
            raise ValueError("a page record needs at least one locale entry")
        return value


class ContentDocument(BaseModel):
    """Opaque tree of content nodes.

    Only ``type`` and ``nodes`` are declared.  Every other key is carried
    through untouched, and a declared field that was never given is not
    written back.
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
