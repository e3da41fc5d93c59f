"""
Dictionary entry value model.

This is the detached, thread-safe representation of an authoritative record,
passed between the store, the synchronizer workers and the API layer.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DictionaryEntry(BaseModel):
    """
    One sign-language dictionary word.

    ``index_synced`` and ``content_version`` are owned by the store and the
    synchronizer; values supplied by callers are ignored on write.
    """

    id: Optional[int] = Field(default=None, description="Stable entry id")
    word: str = Field(min_length=1, max_length=100)
    definition: str = Field(default="")
    media_ref: str = Field(min_length=1, description="Gesture video URL")
    index_synced: bool = False
    content_version: int = 0

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_index_document(self) -> dict:
        return {
            "id": self.id,
            "word": self.word,
            "definition": self.definition,
            "media_ref": self.media_ref,
            "content_version": self.content_version,
        }
