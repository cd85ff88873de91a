# linework/llm/types.py
"""Normalized response types returned by the remote generation client."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_AUTHOR = "KDP Creator"


class BookMetadata(BaseModel):
    """Marketplace listing metadata for a generated book."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(default="", description="Book title")
    subtitle: str = Field(default="", description="Book subtitle")
    description: str = Field(default="", description="Listing description")
    author_name: str = Field(default=DEFAULT_AUTHOR, description="Author shown on the cover")
    keywords: list[str] = Field(default_factory=list, description="Search keywords")


class PageSpec(BaseModel):
    """One planned page: a title and the scene to draw."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    prompt: str = ""
    saying: str = ""


class BookPlan(BaseModel):
    """Result of the planning request."""

    metadata: BookMetadata = Field(default_factory=BookMetadata)
    pages: list[PageSpec] = Field(default_factory=list)


class BookDimensions(BaseModel):
    """Requested trim size of the exported book."""

    model_config = ConfigDict(extra="ignore")

    width: float = Field(default=8.5, gt=0)
    height: float = Field(default=11.0, gt=0)
    unit: Literal["in", "px"] = "in"


class TemplateAnalysis(BaseModel):
    """Dimensions read from an uploaded cover template (all optional)."""

    model_config = ConfigDict(extra="ignore")

    width: float | None = None
    height: float | None = None
    has_spine: bool | None = None
