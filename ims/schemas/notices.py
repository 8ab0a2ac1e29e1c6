from pydantic import BaseModel, Field, field_validator


class NoticeIn(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(min_length=1)
    is_pinned: bool = False

    @field_validator("title", "content", mode="before")
    @classmethod
    def strip(cls, v):
        return str(v).strip() if v is not None else v
