"""Error taxonomy for the aggregation engine.

Propagation rules:
- StoreUnavailable from the rollup read (or a dimension lookup) is fatal
  to the whole query.
- StoreUnavailable from the partial-day recompute is downgraded to a
  PartialDataDegraded notice on the report; the rollup data is still served.
- DimensionNotFound never reaches callers; the resolver turns it into
  "no filter".
"""


class AnalyticsError(Exception):
    """Base class for all aggregation-engine errors."""


class NotAuthorized(AnalyticsError):
    """Caller lacks access to the requested project."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Not authorized for project {project_id!r}")


class DimensionNotFound(AnalyticsError):
    """A region or topic filter value does not exist for the project."""

    def __init__(self, dimension: str, value: str, project_id: str) -> None:
        self.dimension = dimension
        self.value = value
        self.project_id = project_id
        super().__init__(
            f"No active {dimension} {value!r} for project {project_id!r}"
        )


class UnsupportedPlatform(AnalyticsError, ValueError):
    """A platform code is outside the supported whitelist."""

    def __init__(self, platform: str, supported: tuple[str, ...] | list[str]) -> None:
        self.platform = platform
        self.supported = tuple(supported)
        super().__init__(
            f"Unsupported platform {platform!r}. "
            f"Must be one of: {sorted(self.supported)}"
        )


class StoreUnavailable(AnalyticsError):
    """A rollup, event or dimension store read failed or timed out."""

    def __init__(self, store: str, operation: str, reason: str) -> None:
        self.store = store
        self.operation = operation
        self.reason = reason
        super().__init__(f"{store} store unavailable during {operation}: {reason}")


class PartialDataDegraded(AnalyticsError):
    """Today's partial-day slice could not be recomputed.

    Not raised to callers: the facade attaches it to the report, which
    then carries rollup-only data and ``degraded=True``.
    """

    user_message = "data may be incomplete for today"

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"{self.user_message} ({cause})")
