"""
LLM provider interface used by the generation service.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


@dataclass
class LLMResponse:
    """One completion and what it cost."""
    content: str
    tokens_in: int = 0
    tokens_out: int = 0
    model: str = ""
    cost_estimate: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.tokens_in + self.tokens_out


class LLMProvider(ABC):
    """Chat-completion backend. Generators only depend on this interface."""

    name = "abstract"

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Generate a chat completion.
        
        Args:
            messages: Chat messages, each with 'role' and 'content'
            model: Model identifier
            temperature: Sampling temperature
            max_tokens: Completion length cap
            
        Returns:
            LLMResponse
        """
        pass

    def complete(self, system: str, prompt: str, model: str, temperature: float = 0.7) -> LLMResponse:
        """Single-turn completion: one system message, one user message."""
        return self.chat(
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            model=model,
            temperature=temperature,
        )

    def estimate_cost(self, tokens_in: int, tokens_out: int, model: str) -> float:
        return 0.0
