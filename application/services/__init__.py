from application.services.context_packing import build_context
from application.services.lore_repository import LoreRepository, RepositoryState
from application.services.retrieval_service import RetrievalService

__all__ = [
    "LoreRepository",
    "RepositoryState",
    "RetrievalService",
    "build_context",
]
