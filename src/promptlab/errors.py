"""Exception hierarchy for promptlab."""


class PromptLabError(Exception):
    """Base class for all promptlab errors."""


class ConfigurationError(PromptLabError, ValueError):
    """Invalid run configuration, raised before any generation starts."""


class LLMError(PromptLabError):
    """Text-generation call was rejected by the provider."""


class LLMAuthenticationError(LLMError):
    """Provider rejected the credentials."""


class LLMRateLimitError(LLMError):
    """Provider rate limit exceeded after all retries."""


class LLMServerError(LLMError):
    """Provider returned a server-side error."""


class LLMConnectionError(LLMError):
    """Provider could not be reached or the call timed out."""


class LLMResponseError(PromptLabError):
    """Provider call succeeded but the response was malformed."""


class EvaluationError(PromptLabError):
    """Evaluation call sequence failed part way; ``cost`` is what was already spent."""

    def __init__(self, message: str, cost: float = 0.0):
        super().__init__(message)
        self.cost = cost
