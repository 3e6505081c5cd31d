"""Summary and question generation backed by a language model."""

from daylog.generation.llm import LLMClient
from daylog.generation.synthesizer import QuestionGenerator, SummaryGenerator

__all__ = ["LLMClient", "QuestionGenerator", "SummaryGenerator"]
