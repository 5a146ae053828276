"""Custom exception hierarchy for the ci-scheduler core.

Exception Hierarchy:
    SchedulerError (base)
    ├── ConfigurationError
    ├── CiYamlValidationError
    ├── ConfigFetchError
    ├── DatastoreError
    │   └── TransactionConflictError
    ├── ExternalServiceError
    │   ├── CheckRunServiceError
    │   └── BuildServiceError
    └── EventDecodeError

Validation failures of a repository's ``.ci.yaml`` are not fatal: the
config resolver catches ``CiYamlValidationError`` and turns it into a
failing check run. ``DatastoreError`` is recovered per commit during
ingestion. Everything else propagates to the caller.

Example Usage:
    >>> from ci_scheduler.exceptions import ConfigFetchError
    >>> try:
    ...     text = await fetcher.fetch_config_text(slug, sha)
    ... except httpx.TransportError as e:
    ...     raise ConfigFetchError(f"Cannot fetch .ci.yaml for {slug}") from e
"""


class SchedulerError(Exception):
    """Base exception for all ci-scheduler errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(SchedulerError):
    """Process settings are invalid, missing, or unreadable.

    Examples:
        - Settings file not found
        - Invalid YAML syntax in the settings file
        - Unset environment variable referenced by the settings file
    """

    pass


class CiYamlValidationError(SchedulerError):
    """A repository's ``.ci.yaml`` failed structural validation.

    The message is shown verbatim in the validation check run, so it
    names the offending target or dependency.
    """

    pass


class ConfigFetchError(SchedulerError):
    """The ``.ci.yaml`` text could not be fetched or decoded.

    Attributes:
        slug: Repository full name
        ref: Git ref the configuration was requested at
    """

    def __init__(self, message: str, slug: str | None = None, ref: str | None = None) -> None:
        self.slug = slug
        self.ref = ref
        super().__init__(message)


class DatastoreError(SchedulerError):
    """Persistence layer failure."""

    pass


class TransactionConflictError(DatastoreError):
    """A transaction tried to insert an entity whose key already exists.

    Attributes:
        key: The conflicting entity key
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class ExternalServiceError(SchedulerError):
    """A backend call (check reporting or build execution) failed.

    Attributes:
        service: Name of the backend ("github-checks", "buildbucket")
        status_code: HTTP status code when the backend answered
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            service: Name of the failing backend
            status_code: HTTP status code if available
        """
        self.service = service
        self.status_code = status_code

        parts = []
        if service:
            parts.append(f"service: {service}")
        if status_code is not None:
            parts.append(f"status: {status_code}")

        full_message = f"{message} ({', '.join(parts)})" if parts else message
        super().__init__(full_message)
        # Preserve original message
        self.message = message


class CheckRunServiceError(ExternalServiceError):
    """The check-reporting backend rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, service="github-checks", status_code=status_code)


class BuildServiceError(ExternalServiceError):
    """The build-execution backend rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, service="buildbucket", status_code=status_code)


class EventDecodeError(SchedulerError):
    """A webhook payload does not match the expected event schema.

    Attributes:
        event_name: The event kind being decoded (e.g. "check_suite")
    """

    def __init__(self, message: str, event_name: str | None = None) -> None:
        self.event_name = event_name
        super().__init__(message)
