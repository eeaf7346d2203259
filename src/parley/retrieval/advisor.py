"""Retrieval advisor: forwards document filters to a retriever and augments the prompt.

The advisor never ranks or queries on its own. It hands the user prompt and
the filter expression to a :class:`DocumentRetriever` and folds whatever comes
back into the last user message.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from parley.config.schema import DEFAULT_RAG_PROMPT_TEMPLATE
from parley.llm.client import Message

logger = logging.getLogger(__name__)

RAG_FILTER_EXPRESSION = "ragFilterExpression"
DOC_INFO_ID = "docInfoId"


@dataclass
class Document:
    """A document returned by retrieval."""

    id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    score: float | None = None


class DocumentRetriever(Protocol):
    """Protocol for retrieval backends."""

    async def retrieve(self, query: str, filter_expression: str) -> list[Document]:
        """Retrieve documents for a query restricted by a filter expression.

        Args:
            query: User prompt
            filter_expression: Backend filter, e.g. ``docInfoId in ['a', 'b']``

        Returns:
            Retrieved documents, best first
        """
        ...


def build_filter_expression(doc_info_ids: list[str], field_name: str = DOC_INFO_ID) -> str | None:
    """Build a filter expression selecting the given documents.

    Args:
        doc_info_ids: Ids of the documents to search
        field_name: Metadata field holding the document id

    Returns:
        ``<field> in ['a', 'b']`` or None when no documents are selected
    """
    if not doc_info_ids:
        return None
    return f"{field_name} in ['" + "', '".join(doc_info_ids) + "']"


class RetrievalAdvisor:
    """Augments a request with retrieved documents when a filter is present."""

    def __init__(
        self,
        retriever: DocumentRetriever,
        prompt_template: str = DEFAULT_RAG_PROMPT_TEMPLATE,
    ):
        """Initialize the advisor.

        Args:
            retriever: Retrieval backend
            prompt_template: Template with ``{context}`` and ``{query}`` fields
        """
        self.retriever = retriever
        self.prompt_template = prompt_template

    async def advise(self, messages: list[Message], advisor_params: dict[str, Any]) -> list[Document]:
        """Retrieve documents and augment the last user message in place.

        Args:
            messages: Request messages (a copy owned by the request)
            advisor_params: Request advisor parameters

        Returns:
            Retrieved documents; empty when retrieval was skipped
        """
        filter_expression = advisor_params.get(RAG_FILTER_EXPRESSION)
        if not filter_expression:
            logger.debug("Document retrieval was skipped.")
            return []

        user_message = next((m for m in reversed(messages) if m.role == "user"), None)
        if user_message is None:
            logger.debug("Document retrieval was skipped: no user message in request.")
            return []

        documents = await self.retriever.retrieve(user_message.content, filter_expression)
        self._log_documents(documents)

        if documents:
            context = "\n".join(document.text for document in documents)
            user_message.content = self.prompt_template.format(
                context=context, query=user_message.content
            )

        return documents

    @staticmethod
    def _log_documents(documents: list[Document]) -> None:
        logger.debug("Retrieved Documents Count - %d", len(documents))
        for i, document in enumerate(documents, start=1):
            logger.debug("Retrieved Document %d, Score: %s\n%s", i, document.score, document.text)
