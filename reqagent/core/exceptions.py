"""Exception hierarchy for the execution and orchestration engine."""

from typing import Optional


class ReqAgentError(Exception):
    """Base exception for engine operations."""
    pass


class AdapterError(ReqAgentError):
    """A single backend call failed (network, auth, timeout, malformed response)."""

    def __init__(self, message: str, provider_name: Optional[str] = None):
        super().__init__(message)
        self.provider_name = provider_name


class NoProviderAvailable(ReqAgentError):
    """The provider registry is empty."""

    def __init__(self, message: str = "No AI providers available"):
        super().__init__(message)


class ProviderExhausted(ReqAgentError):
    """Every configured provider failed for one execute() call."""

    def __init__(self, last_error: Optional[BaseException] = None, attempts: int = 0):
        detail = str(last_error) if last_error else "unknown error"
        super().__init__(f"All AI providers failed. Last error: {detail}")
        self.last_error = last_error
        self.attempts = attempts


class AgentExecutionError(ReqAgentError):
    """An agent's internal logic failed."""
    pass


class ParseError(AgentExecutionError):
    """Model output did not match any accepted shape."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw[:500]


class PolicyViolation(ReqAgentError):
    """A governance policy (step ceiling) was exceeded."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id


class ValidationExhausted(ReqAgentError):
    """The validate/refine loop ran out of iterations below the threshold."""

    def __init__(self, iterations: int, last_score: float, threshold: float):
        super().__init__(
            f"Validation did not reach {threshold} after {iterations} iterations "
            f"(last score {last_score})"
        )
        self.iterations = iterations
        self.last_score = last_score
        self.threshold = threshold
