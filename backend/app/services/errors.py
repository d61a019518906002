class ChannelError(Exception):
    status_code = 400
    error_code = "channel_error"
    detail = "Channel request failed."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class InvalidIdentifier(ChannelError):
    error_code = "invalid_identifier"
    detail = "Invalid channel identifier. Use a channel URL, @handle, or channel ID."


class ResolutionFailed(ChannelError):
    error_code = "resolution_failed"
    detail = "Failed to resolve channel."


class InvalidVote(ChannelError):
    error_code = "invalid_vote"
    detail = "Vote must be 'for' or 'against'."


class InvalidVerificationStatus(ChannelError):
    error_code = "invalid_status"
    detail = "Verification status must be 0, 1 or 2."


class RateLimited(ChannelError):
    status_code = 429
    error_code = "rate_limited"
    detail = "Too many requests. Please wait and try again."

    def __init__(self, scope: str, retry_after: float, detail: str | None = None):
        if scope == "vote":
            self.error_code = "vote_cooldown"
            detail = detail or "You can only vote once per channel per minute."
        super().__init__(detail)
        self.scope = scope
        self.retry_after = max(0.0, retry_after)


class Unauthorized(ChannelError):
    status_code = 401
    error_code = "unauthorized"
    detail = "Unauthorized"


class Forbidden(ChannelError):
    status_code = 403
    error_code = "forbidden"
    detail = "Forbidden"


class InvalidRequest(ChannelError):
    error_code = "invalid_request"
    detail = "Invalid request"
