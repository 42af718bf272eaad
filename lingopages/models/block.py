from pydantic import BaseModel, ConfigDict, Field

from lingopages.models.page import ContentDocument


class BlockContract(BaseModel):
    """A reusable content block, e.g. the template new pages are seeded from."""

    model_config = ConfigDict(extra="forbid")

    key: str
    title: str
    description: str = ""
    content: ContentDocument = Field(default_factory=ContentDocument)
