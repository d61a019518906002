import logging
from typing import Any, Iterable

from .channel_store import ChannelStore
from .errors import Forbidden, InvalidIdentifier, Unauthorized
from .identifiers import clean_channel_id, is_canonical_channel_id
from .models import (
    UNKNOWN_CHANNEL_NAME,
    ChannelRecord,
    parse_verification_status,
    parse_vote_direction,
)
from .rate_limit import FixedWindowRateLimiter
from .resolver import ChannelResolver, Resolution
from .ttl_cache import StalenessCache


logger = logging.getLogger(__name__)


class ChannelService:
    """
    Get / vote / verify on top of the normalizer, resolver, store, cache and
    rate limiters. Every operation checks the global limiter first and stops
    at the first failing stage, before anything is written.
    """

    def __init__(
        self,
        store: ChannelStore,
        cache: StalenessCache,
        resolver: ChannelResolver,
        global_limiter: FixedWindowRateLimiter,
        vote_limiter: FixedWindowRateLimiter,
        admin_ids: Iterable[str] = (),
    ):
        self.store = store
        self.cache = cache
        self.resolver = resolver
        self.global_limiter = global_limiter
        self.vote_limiter = vote_limiter
        self.admin_ids = frozenset(admin_id.strip() for admin_id in admin_ids if admin_id and admin_id.strip())
        # Mutations in the store drop the cached copy.
        self.store.on_change = self.cache.invalidate

    def is_admin(self, identity: str | None) -> bool:
        return bool(identity) and identity in self.admin_ids

    def _resolve(self, raw_id: str, operation: str) -> Resolution:
        clean_id = clean_channel_id(raw_id)
        resolution = self.resolver.resolve(clean_id)
        logger.info(
            "[%s] raw=%r clean=%r resolved=%r", operation, raw_id, clean_id, resolution.channel_id
        )
        # Canonical-link scraping accepts ids of any length.
        if not is_canonical_channel_id(resolution.channel_id):
            logger.warning("[%s] resolved id %r is not a channel id", operation, resolution.channel_id)
            raise InvalidIdentifier("Invalid channel ID")
        return resolution

    def get_channel(self, raw_id: str, actor: str) -> ChannelRecord:
        self.global_limiter.consume(actor)
        channel_id, display_name = self._resolve(raw_id, "channel")

        cached = self.cache.get(channel_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(channel_id)
        record = self.store.get_or_create(channel_id)
        if display_name and record.name == UNKNOWN_CHANNEL_NAME:
            # The backfill invalidates the id itself; re-read under a fresh generation.
            self.store.maybe_set_name(channel_id, display_name)
            generation = self.cache.generation(channel_id)
            record = self.store.get_or_create(channel_id)

        if not self.cache.put(channel_id, record, generation=generation):
            logger.debug("Skipped caching %s: changed while it was being read", channel_id)
        return record

    def vote(self, raw_id: str, direction: Any, actor: str) -> dict[str, bool]:
        self.global_limiter.consume(actor)
        direction = parse_vote_direction(direction)
        channel_id = self._resolve(raw_id, "vote").channel_id

        self.vote_limiter.consume(f"{actor}:{channel_id}")

        record = self.store.increment_vote(channel_id, direction)
        logger.info(
            "[vote] %s %s by %s (for=%s against=%s)",
            channel_id,
            direction.value,
            actor,
            record.votes_for,
            record.votes_against,
        )
        return {"success": True}

    def verify(self, raw_id: str, status: Any, acting_identity: str | None, actor: str) -> dict[str, bool]:
        self.global_limiter.consume(actor)
        if not acting_identity:
            raise Unauthorized()
        if not self.is_admin(acting_identity):
            logger.warning("[verify] non-admin identity %r rejected", acting_identity)
            raise Forbidden()

        status = parse_verification_status(status)
        channel_id = self._resolve(raw_id, "verify").channel_id

        self.store.set_verification(channel_id, status)
        logger.info("[verify] %s set to %s by %s", channel_id, status.name, acting_identity)
        return {"success": True}

    def close(self) -> None:
        self.resolver.close()
