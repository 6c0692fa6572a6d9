"""Error taxonomy for the backlink engine."""


class BacklinkEngineError(Exception):
    """Base class for all engine errors."""


class ProviderUnavailable(BacklinkEngineError):
    """A search/authority provider is down, misconfigured or returned garbage.

    Always recoverable: callers fall back to heuristics at the smallest
    scope possible (one keyword, one site).
    """

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider} unavailable: {reason}")


class ValidationError(BacklinkEngineError):
    """Invalid input. Fatal to the single request, nothing is persisted."""


class WebsiteNotFound(ValidationError):
    def __init__(self, website_id):
        self.website_id = website_id
        super().__init__(f"Website {website_id} not found")


class OpportunityNotFound(ValidationError):
    def __init__(self, opportunity_id):
        self.opportunity_id = opportunity_id
        super().__init__(f"Opportunity {opportunity_id} not found")


class InvalidStatusTransition(ValidationError):
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move opportunity from '{_value(current)}' to '{_value(requested)}'"
        )


class CheckAlreadyRunning(BacklinkEngineError):
    """Another monitoring run for the same website is still in progress."""

    def __init__(self, website_id):
        self.website_id = website_id
        super().__init__(f"A backlink check is already running for website {website_id}")


class SnapshotRunFailure(BacklinkEngineError):
    """A monitoring run failed; its check row is marked failed and is safe to retry."""

    def __init__(self, check_id, message: str):
        self.check_id = check_id
        self.message = message
        super().__init__(f"Backlink check {check_id} failed: {message}")


def _value(status):
    return getattr(status, "value", status)
