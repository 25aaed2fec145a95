from abc import ABC, abstractmethod
from typing import List, Type, TypeVar

from pydantic import BaseModel

# Generic type variable for the Pydantic model expected in structured responses.
T = TypeVar("T", bound=BaseModel)

class LLMProvider(ABC):
    """
    Contract for any LLM provider backing the interview assistant, the
    vagueness gate and the report generator.
    """

    @abstractmethod
    async def generate_structured_output(
        self,
        messages: List[dict],
        response_model: Type[T],
        temperature: float = 0.0
    ) -> T:
        """
        Generates a response from the LLM strictly matching the Pydantic 'response_model'.
        Implementations raise on transport or parsing failure; callers decide
        whether to fall back or surface the error.
        """
        pass
