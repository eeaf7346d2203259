"""Retrieval advisor and document retriever protocol."""

from parley.retrieval.advisor import (
    DOC_INFO_ID,
    RAG_FILTER_EXPRESSION,
    Document,
    DocumentRetriever,
    RetrievalAdvisor,
    build_filter_expression,
)

__all__ = [
    "DOC_INFO_ID",
    "RAG_FILTER_EXPRESSION",
    "Document",
    "DocumentRetriever",
    "RetrievalAdvisor",
    "build_filter_expression",
]
