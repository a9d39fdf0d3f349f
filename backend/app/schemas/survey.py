"""Survey definition schemas.

Questions are a tagged union discriminated on ``type``: every variant carries
only the constraints that apply to it, so a text question cannot hold a
numeric range and a number question cannot hold options.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class OptionSpec(BaseModel):
    value: str = Field(min_length=1, max_length=200)
    label: str


class _QuestionBase(BaseModel):
    id: str | None = None
    label: str = Field(min_length=1)
    help_text: str | None = None
    required: bool = False
    order_index: int = 0


class TextQuestion(_QuestionBase):
    type: Literal["text"] = "text"
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)


class NumberQuestion(_QuestionBase):
    type: Literal["number"] = "number"
    min: float | None = None
    max: float | None = None


class BooleanQuestion(_QuestionBase):
    type: Literal["boolean"] = "boolean"


class DateQuestion(_QuestionBase):
    type: Literal["date"] = "date"


class SingleChoiceQuestion(_QuestionBase):
    type: Literal["single_choice"] = "single_choice"
    options: list[OptionSpec] = []


class MultiChoiceQuestion(_QuestionBase):
    type: Literal["multi_choice"] = "multi_choice"
    options: list[OptionSpec] = []


QuestionSpec = Annotated[
    Union[
        TextQuestion,
        NumberQuestion,
        BooleanQuestion,
        DateQuestion,
        SingleChoiceQuestion,
        MultiChoiceQuestion,
    ],
    Field(discriminator="type"),
]

question_spec_adapter: TypeAdapter[QuestionSpec] = TypeAdapter(QuestionSpec)

# Keys each variant stores in SurveyQuestion.validation
VALIDATION_KEYS = {
    "text": ("min_length", "max_length"),
    "number": ("min", "max"),
}


class SurveyCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str = ""
    regions: list[str] = []
    questions: list[QuestionSpec] = []
