from .base import (
    GenerationRequest,
    SearchHit,
    GenerationService,
    RetrievalService,
    StandardsService,
    PersistenceService,
)
from .generation import GenerationClient
from .persistence import PersistenceClient
from .research import ResearchClient
from .standards import StandardsClient

__all__ = [
    "GenerationRequest",
    "SearchHit",
    "GenerationService",
    "RetrievalService",
    "StandardsService",
    "PersistenceService",
    "GenerationClient",
    "PersistenceClient",
    "ResearchClient",
    "StandardsClient",
]
