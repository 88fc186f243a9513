# llm/errors.py


class LLMError(Exception):
    """
    Base class for every failure raised while calling a language model.
    """


class LLMConfigurationError(LLMError):
    """
    Raised when the client cannot be configured, e.g. a missing API key.
    """


class LLMTimeoutError(LLMError):
    """
    Raised when a call does not complete within its wall-clock timeout.
    """


class LLMTransportError(LLMError):
    """
    Raised when the HTTP channel keeps failing after every backoff attempt,
    or fails with a status that is not worth retrying.
    """


class RunawayOutputError(LLMError):
    """
    Raised when a streamed response degenerates into repetition.
    """
