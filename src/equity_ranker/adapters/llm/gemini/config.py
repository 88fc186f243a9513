# gemini/config.py

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class GeminiConfig:
    """
    Immutable configuration for the Gemini streaming endpoint.

    Centralises the endpoint, model and call discipline used by the Gemini
    adapter, so tests can shrink timeouts and backoff without patching.

    Returns:
        GeminiConfig: Immutable configuration object for Gemini calls.
    """

    # REST base for the generative language API
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # model used for both selection and batch scoring
    model: str = "gemini-2.5-flash-lite"

    # environment variable holding the API key
    api_key_env: str = "GEMINI_API_KEY"

    # wall-clock limit, in seconds, for collecting one streamed response
    request_timeout: float = 120.0

    # tokens the model may spend on hidden reasoning (0 disables it)
    thinking_budget: int = 0

    # first transport backoff delay in seconds, doubled per retry
    backoff_base: float = 1.0

    # transport retries after the first attempt
    max_transport_retries: int = 3

    @property
    def stream_url(self) -> str:
        """
        Full URL of the server-sent-events generation endpoint.

        Returns:
            str: The ``:streamGenerateContent`` URL for the configured model.
        """
        return f"{self.base_url}/models/{self.model}:streamGenerateContent"
