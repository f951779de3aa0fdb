from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, model_validator


class GenerationResult(BaseModel):
    """
    What callers of the content service receive. Never partially populated:
    success carries content, failure carries a user-displayable error.
    """

    success: bool
    content: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _one_outcome(self) -> "GenerationResult":
        if self.success:
            if not self.content or self.error is not None:
                raise ValueError("successful result needs content and no error")
        elif not self.error or self.content is not None:
            raise ValueError("failed result needs an error and no content")
        return self

    @classmethod
    def ok(cls, content: str) -> "GenerationResult":
        return cls(success=True, content=content)

    @classmethod
    def fail(cls, error: str) -> "GenerationResult":
        return cls(success=False, error=error)
