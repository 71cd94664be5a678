class TagPipelineError(Exception):
    """Base class for errors raised by the tag pipeline."""


class ConfigurationError(TagPipelineError):
    """Malformed tag/bundle/detector configuration, detected at load time."""

    def __init__(self, section: str, message: str):
        super().__init__(f"[{section}] {message}")
        self.section = section
        self.message = message


class PoseSolveError(TagPipelineError):
    """The perspective solve could not produce a trustworthy transform."""


class DecoderError(TagPipelineError):
    """The external marker decoder failed or was used after release."""
