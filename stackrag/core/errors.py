"""Error taxonomy for the question-answering pipeline."""


class InvalidArgumentError(ValueError):
    """A caller-supplied parameter violates a precondition (never retried)."""


class CapabilityUnavailableError(RuntimeError):
    """A required collaborator is not configured (e.g. no LLM API key)."""

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(f"The {capability} capability is not configured.")


class CollaboratorError(RuntimeError):
    """
    An external collaborator (embedding model, passage index or language model) failed.

    The message names the failing stage only; the collaborator's own exception
    is chained as ``__cause__`` for logs but never echoed to callers.
    """

    stage = "collaborator"

    def __init__(self, detail: str | None = None):
        self.detail = detail or f"The {self.stage} stage failed."
        super().__init__(self.detail)


class EmbeddingError(CollaboratorError):
    stage = "embedding"


class RetrievalError(CollaboratorError):
    stage = "retrieval"


class GenerationError(CollaboratorError):
    stage = "generation"
