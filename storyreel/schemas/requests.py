"""
Request schemas for the video generation API.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class VideoJobRequest(BaseModel):
    """Request body for POST /generate-video."""

    title: str = Field(
        default="",
        max_length=500,
        description="Banner title; also narrated as the opening segment",
    )
    story_text: str = Field(
        default="",
        alias="storyText",
        max_length=20000,
        description="Story narration. Text after a [BREAK] marker is not narrated.",
    )
    background_category: str = Field(
        default="random",
        alias="backgroundCategory",
        description="minecraft, subway, cooking, workers, asmr, random (aliases accepted)",
    )
    voice_id: Optional[str] = Field(
        default=None,
        alias="voiceId",
        description="Voice alias (brian, adam, antoni, sarah, laura, rachel) or raw ElevenLabs voice id",
    )
    subreddit: Optional[str] = Field(
        default=None,
        alias="subredditLabel",
        description="Subreddit shown on the banner, normalized to r/<name>",
    )
    author: Optional[str] = Field(
        default=None,
        alias="authorLabel",
        description="Author shown on the banner (defaults to Anonymous)",
    )
    allow_degraded_render: Optional[bool] = Field(
        default=None,
        alias="allowDegradedRender",
        description="Retry once with background + audio only if the full render fails",
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "title": "AITA for refusing to share my fries?",
                "storyText": "So this happened yesterday at lunch. [BREAK] Part two tomorrow.",
                "backgroundCategory": "minecraft",
                "voiceId": "adam",
                "subredditLabel": "AmItheAsshole",
                "authorLabel": "@throwaway123",
            }
        }

    @model_validator(mode="after")
    def validate_has_text(self) -> "VideoJobRequest":
        """Ensure there is something to narrate or show."""
        if not self.title.strip() and not self.story_text.strip():
            raise ValueError("Either title or storyText must be provided")
        return self
