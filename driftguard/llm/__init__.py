"""Optional LLM client and prompt templates."""

from .client import LLMClient, LLMError
from .prompts import build_docs_drift_prompt, build_logic_drift_prompt

__all__ = ["LLMClient", "LLMError", "build_docs_drift_prompt", "build_logic_drift_prompt"]
