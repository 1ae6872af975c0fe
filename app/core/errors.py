from typing import Optional


class PipelineError(Exception):
    """Base class for failures raised by the extraction/mockup pipeline."""


class UpstreamError(PipelineError):
    """The completion endpoint kept failing until the attempt ceiling was hit."""

    def __init__(self, attempts: int, last_message: str):
        super().__init__(f"Completion endpoint failed after {attempts} attempts: {last_message}")
        self.attempts = attempts
        self.last_message = last_message


class ExtractionError(PipelineError):
    """The model answered, but not with the JSON shape extraction requires."""

    def __init__(self, cause: str, raw: str = ""):
        super().__init__(f"RAOS extraction failed: {cause}")
        self.cause = cause
        self.raw = raw


class GenerationError(PipelineError):
    """No structurally complete HTML document was produced."""

    def __init__(self, attempts: int, reason: str = "incomplete HTML", upstream: Optional[UpstreamError] = None):
        super().__init__(f"Mockup generation failed after {attempts} attempts: {reason}")
        self.attempts = attempts
        self.reason = reason
        self.upstream = upstream


class PipelineStateError(PipelineError):
    """The record is not in a state that allows the requested stage."""
