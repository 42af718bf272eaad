from pydantic import BaseModel, Field


class CreatePageRequest(BaseModel):
    permalink: str = Field(min_length=1, examples=["/about"])
    title: str = Field(min_length=1)
    description: str = ""
    keywords: str = ""
