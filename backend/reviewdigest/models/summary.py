"""Pros/cons summary returned by the summarizers."""

from pydantic import BaseModel, Field

MAX_ASPECTS = 8
MAX_LABEL_LENGTH = 120
MAX_EXAMPLE_IDS = 5


class Aspect(BaseModel):
    """A labeled product attribute backed by one or more reviews."""

    label: str = Field(max_length=MAX_LABEL_LENGTH)
    support_count: int = Field(default=0, ge=0)
    example_ids: list[str] = Field(default_factory=list, max_length=MAX_EXAMPLE_IDS)


class Summary(BaseModel):
    """Pros and cons extracted from a review set."""

    pros: list[Aspect] = Field(default_factory=list, max_length=MAX_ASPECTS)
    cons: list[Aspect] = Field(default_factory=list, max_length=MAX_ASPECTS)
    note_pros: str = ""
    note_cons: str = ""

    @classmethod
    def empty(cls) -> "Summary":
        return cls(note_pros="No pros found", note_cons="No cons found")
