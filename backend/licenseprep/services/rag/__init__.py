from licenseprep.services.rag.chat import ChatEngine, ChatReply, ChatSource
from licenseprep.services.rag.retriever import HybridRetriever, reciprocal_rank_fusion

__all__ = [
    "ChatEngine",
    "ChatReply",
    "ChatSource",
    "HybridRetriever",
    "reciprocal_rank_fusion",
]
