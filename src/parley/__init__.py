"""Parley - streaming conversation engine for LLM playgrounds.

Parley turns a user prompt into a live, classified token stream: answer text,
model reasoning and tool activity are kept apart while they arrive and are
folded into replayable message metadata once the generation ends.

Key modules:

- :mod:`parley.chat` - Request assembly, stream dispatch, segment classification,
  finalization, cancellation and conversation persistence
- :mod:`parley.llm` - LLM client abstraction (OpenAI-compatible, Ollama, Anthropic)
- :mod:`parley.retrieval` - Retrieval advisor that forwards document filters
- :mod:`parley.tools` - Tool bindings and the tool-call executor
- :mod:`parley.server` - FastAPI server with SSE streaming
- :mod:`parley.cli` - Typer command line interface
"""

__version__ = "0.1.0"
