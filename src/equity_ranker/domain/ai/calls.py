# ai/calls.py

import asyncio

from equity_ranker.adapters.llm import LLMClient, LLMTimeoutError


async def complete_with_timeout(
    client: LLMClient,
    prompt: str,
    *,
    use_search: bool,
    timeout: float,
) -> str:
    """
    Race one model call against a wall-clock timeout.

    Whatever the client does internally, the timeout wins deterministically
    and surfaces as a distinguishable error.

    Returns:
        str: The response text.

    Raises:
        LLMTimeoutError: When the timeout elapses first.
        LLMError: Whatever the client raises.
    """
    try:
        return await asyncio.wait_for(
            client.complete(prompt, use_search=use_search),
            timeout=timeout,
        )
    except TimeoutError as error:
        raise LLMTimeoutError(f"Model call exceeded {timeout:.0f}s") from error
