from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidVerificationStatus, InvalidVote


UNKNOWN_CHANNEL_NAME = "Unknown"


class VerificationStatus(IntEnum):
    UNVERIFIED = 0
    VERIFIED_OWNED = 1
    VERIFIED_INDEPENDENT = 2


class VoteDirection(str, Enum):
    FOR = "for"
    AGAINST = "against"


# Older extension builds still post "yes"/"no".
VOTE_ALIASES = {
    "for": VoteDirection.FOR,
    "yes": VoteDirection.FOR,
    "against": VoteDirection.AGAINST,
    "no": VoteDirection.AGAINST,
}


def parse_vote_direction(value: Any) -> VoteDirection:
    if isinstance(value, VoteDirection):
        return value
    direction = VOTE_ALIASES.get(str(value or "").strip().lower())
    if direction is None:
        raise InvalidVote()
    return direction


def parse_verification_status(value: Any) -> VerificationStatus:
    # bool is an int subclass; True/False are not statuses.
    if isinstance(value, bool):
        raise InvalidVerificationStatus()
    try:
        return VerificationStatus(int(value))
    except (TypeError, ValueError):
        raise InvalidVerificationStatus()


class ChannelRecord(BaseModel):
    """Aggregate state for one canonical channel id."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = UNKNOWN_CHANNEL_NAME
    votes_for: int = Field(default=0, ge=0)
    votes_against: int = Field(default=0, ge=0)
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "votesFor": self.votes_for,
            "votesAgainst": self.votes_against,
            "verificationStatus": int(self.verification_status),
        }
