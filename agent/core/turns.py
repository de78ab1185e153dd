"""Conversation turn model shared by the server and the session client.

The wire and storage shape follows the Gemini ``contents`` format::

    {"role": "user" | "model", "parts": [{"text": ...} | {"inline_data": {...}}]}
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "model"


class TextSegment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str


class InlineData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mime_type: str
    data: str = Field(..., description="Base64-encoded bytes")


class ImageSegment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    inline_data: InlineData


Segment = Union[TextSegment, ImageSegment]


class Turn(BaseModel):
    """One message in a conversation; never edited once appended."""

    model_config = ConfigDict(frozen=True)

    role: Role
    parts: List[Segment] = Field(..., min_length=1)

    @classmethod
    def user(cls, text: str = "", images: Optional[List[InlineData]] = None) -> "Turn":
        parts: List[Segment] = []
        if text:
            parts.append(TextSegment(text=text))
        for image in images or []:
            parts.append(ImageSegment(inline_data=image))
        return cls(role=Role.USER, parts=parts)

    @classmethod
    def assistant(cls, text: str) -> "Turn":
        return cls(role=Role.ASSISTANT, parts=[TextSegment(text=text)])

    @property
    def has_image(self) -> bool:
        return any(isinstance(part, ImageSegment) for part in self.parts)

    @property
    def text(self) -> Optional[str]:
        """First text segment, or None for image-only turns."""
        for part in self.parts:
            if isinstance(part, TextSegment):
                return part.text
        return None

    @property
    def images(self) -> List[InlineData]:
        return [part.inline_data for part in self.parts if isinstance(part, ImageSegment)]


TurnLog = TypeAdapter(List[Turn])


def dump_turns(turns: List[Turn]) -> str:
    return TurnLog.dump_json(turns).decode("utf-8")
