"""Pydantic models for quiz video requests and staged media."""
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class BackgroundStyle(str, Enum):
    GRADIENT = "gradient"
    PARTICLES = "particles"
    WAVES = "waves"


class QuizQuestion(BaseModel):
    """A single multiple-choice question."""

    model_config = {"frozen": True}

    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=2, max_length=4)
    correctAnswer: int = Field(ge=0)

    @field_validator("options")
    @classmethod
    def _options_not_empty(cls, options: List[str]) -> List[str]:
        if any(not option for option in options):
            raise ValueError("options must be non-empty strings")
        return options

    @model_validator(mode="after")
    def _answer_in_range(self) -> "QuizQuestion":
        if self.correctAnswer >= len(self.options):
            raise ValueError("correctAnswer must index one of the options")
        return self


class StyleSpec(BaseModel):
    """Visual style passed through to the renderer."""

    backgroundStyle: BackgroundStyle
    primaryColor: Optional[str] = None
    secondaryColor: Optional[str] = None
    fontFamily: Optional[str] = None


class VoiceSpec(BaseModel):
    """Voice override; provider defaults apply when absent."""

    locale: str
    name: str


class VideoRequest(BaseModel):
    """Already-validated input to the video pipeline."""

    questions: List[QuizQuestion] = Field(min_length=1)
    style: StyleSpec
    voice: Optional[VoiceSpec] = None


class AudioAsset(BaseModel):
    """Local audio files for one question, option paths index-aligned."""

    question_audio_path: Path
    option_audio_paths: List[Path]

    def all_paths(self) -> List[Path]:
        return [self.question_audio_path, *self.option_audio_paths]


class AudioUrls(BaseModel):
    """Staged URLs for one question's audio, as fetched by the renderer."""

    question_audio_url: str
    option_audio_urls: List[str]

    def all_urls(self) -> List[str]:
        return [self.question_audio_url, *self.option_audio_urls]
