"""Models for LLM provider requests and responses."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


ImageRole = Literal[
    "overview", "detail", "marks", "underside", "damage", "context", "additional"
]


class CapturedImage(BaseModel):
    """One photograph of the item, carried as a data URL or remote URL."""

    id: str
    data_url: str
    role: ImageRole = "overview"
    label: str = ""


def normalize_images(images) -> List[CapturedImage]:
    """Accept a data URL or a list of data URLs / CapturedImage and return a list."""
    if isinstance(images, str):
        return [
            CapturedImage(id="primary", data_url=images, role="overview", label="Primary Image")
        ]

    normalized = []
    for i, image in enumerate(images):
        if isinstance(image, str):
            role = "overview" if i == 0 else "additional"
            image = CapturedImage(id=f"image-{i}", data_url=image, role=role, label=f"Image {i + 1}")
        elif not isinstance(image, CapturedImage):
            raise TypeError(f"Unsupported image input: {type(image).__name__}")
        normalized.append(image)
    return normalized


class ReasoningSynthesisResponse(BaseModel):
    """Structured adjudication returned by the reasoning model."""

    synthesized_name: Optional[str] = Field(None, alias="synthesizedName")
    synthesized_maker: Optional[str] = Field(None, alias="synthesizedMaker")
    synthesized_era: Optional[str] = Field(None, alias="synthesizedEra")
    synthesized_value_min: Optional[float] = Field(None, ge=0.0, alias="synthesizedValueMin")
    synthesized_value_max: Optional[float] = Field(None, ge=0.0, alias="synthesizedValueMax")
    final_confidence: Optional[float] = Field(None, ge=0.0, le=1.0, alias="finalConfidence")
    reasoning: str = ""
    agreement_level: Optional[Literal["high", "medium", "low"]] = Field(
        None, alias="agreementLevel"
    )
    recommend_expert: bool = Field(False, alias="recommendExpert")
    expert_reason: Optional[str] = Field(None, alias="expertReason")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("agreement_level", mode="before")
    @classmethod
    def _normalize_agreement(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return value if value in ("high", "medium", "low") else None
        return value
