# llm/protocol.py

from typing import Protocol, runtime_checkable


@runtime_checkable
class LLMClient(Protocol):
    """
    Minimal contract for a text-completion service.

    A single prompt goes in and the full concatenated response text comes
    out. Implementations raise subclasses of ``LLMError`` on failure.
    """

    async def complete(self, prompt: str, *, use_search: bool = False) -> str:
        """
        Send a prompt and collect the complete response.

        Args:
            prompt (str): The full prompt text.
            use_search (bool): Enable web-search grounding for this call.

        Returns:
            str: The response text, stripped and non-empty.
        """
        ...
