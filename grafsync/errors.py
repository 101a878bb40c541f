"""Exception types raised by grafsync."""


class GrafsyncError(Exception):
    """Base class for grafsync errors."""


class ConfigurationError(GrafsyncError):
    """Missing or invalid startup configuration. Fatal."""


class ReadinessTimeoutError(GrafsyncError):
    """Grafana health endpoint did not report healthy in time."""

    def __init__(self, url: str, timeout: float) -> None:
        self.url = url
        self.timeout = timeout
        super().__init__(f"Grafana at {url} not healthy after {timeout:g}s")


class GrafanaAPIError(GrafsyncError):
    """
    A Grafana API call did not return 200.

    status_code is None when the request never got a response
    (connection refused, timeout, ...).
    """

    def __init__(
        self,
        method: str,
        path: str,
        status_code: int | None = None,
        message: str = "",
    ) -> None:
        self.method = method
        self.path = path
        self.status_code = status_code
        self.message = message
        if status_code is None:
            text = f"{method} {path} failed: {message}"
        else:
            text = (
                f"Unexpected status code returned from Grafana API "
                f"(got: {status_code}, expected: 200) on {method} {path}"
            )
            if message:
                text += f": {message}"
        super().__init__(text)


class SlugResolutionError(GrafsyncError):
    """Dashboard slug could not be resolved to an ID."""

    def __init__(self, slug: str, attempts: int, last_error: Exception | None = None) -> None:
        self.slug = slug
        self.attempts = attempts
        self.last_error = last_error
        text = f"Could not resolve dashboard '{slug}' after {attempts} attempts"
        if last_error is not None:
            text += f": {last_error}"
        super().__init__(text)


class MalformedPayloadError(GrafsyncError):
    """A dashboard payload is not a JSON object."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        super().__init__(f"Payload '{key}' is not a JSON object: {reason}")


class EventSourceError(GrafsyncError):
    """The event source failed in a way retrying cannot fix."""
