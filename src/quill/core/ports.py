from __future__ import annotations
from typing import Protocol


class Provider(Protocol):
    """
    Interface the engine uses to talk to any text-generation backend.
    """

    key: str
    display_name: str
    # Surface the model name for logging
    model: str

    def generate(self, prompt: str) -> str:
        """
        Single-shot call: exactly one upstream request (Gemini loops over models
        internally). Returns the generated text, possibly empty.
        Raises ProviderError subclasses on failure.
        """
        ...
