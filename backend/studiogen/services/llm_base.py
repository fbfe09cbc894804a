"""
StudioGen Backend - Abstract Image Model Interface
====================================================

What:  Abstract base class defining the contract for the generative model
       behind the /api/generate endpoints.
How:   Concrete implementations (GeminiService) inherit from ImageModelService.
       GenerationService only depends on this interface, tests swap in mocks.
Who:   Called by GenerationService.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ImageInput:
    """Raw image bytes sent alongside a prompt."""

    data: bytes
    mime_type: str


class ImageModelService(ABC):
    """
    Abstract interface for multimodal generation.

    Contract:
        - Implementations handle their own retry logic and error translation
        - Provider errors are wrapped in LLMServiceError
        - "The model answered with nothing usable" is signalled by returning
          None, never by raising; the caller picks the user-facing message
    """

    @abstractmethod
    async def generate_image(self, prompt: str, image: Optional[ImageInput] = None) -> Optional[str]:
        """
        Generate (or edit) an image.

        Args:
            prompt: Instruction text.
            image:  Optional input image, sent before the prompt.

        Returns:
            The first returned image as `data:<mime>;base64,<data>`, or None
            when the response carried no image.

        Raises:
            LLMServiceError: The provider failed after all retries.
            CircuitBreakerOpenError: Too many consecutive recent failures.
        """
        ...

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        image: Optional[ImageInput] = None,
        response_mime_type: Optional[str] = None,
    ) -> Optional[str]:
        """Text answer for the prompt (and image), or None when empty."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the provider is reachable and operational.

        Lightweight metadata call, does NOT consume generation quota.
        """
        ...
