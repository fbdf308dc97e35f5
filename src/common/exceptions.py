"""Exception hierarchy shared by every pipeline stage."""


class PipelineError(Exception):
    """Base class for pipeline failures."""


class TransportError(PipelineError):
    """Network request failed or timed out."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


class FeedParseError(PipelineError):
    """A feed parsing strategy produced no usable items."""


class PersistenceError(PipelineError):
    """The durable pipeline store could not complete an operation."""


class PipelineRunClosedError(PersistenceError):
    """A write was attempted after the run reached a terminal state."""


class ConfigError(PipelineError):
    """Configuration is missing or invalid."""
