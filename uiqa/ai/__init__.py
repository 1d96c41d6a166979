"""AI collaborator: shared interface, prompts, JSON extraction and provider adapters."""

from .base import AICollaborator, ImageInput, LinkExtractionResult
from .factory import create_collaborator

__all__ = [
    "AICollaborator",
    "ImageInput",
    "LinkExtractionResult",
    "create_collaborator",
]
