# ward_planner/tenants/redis_tenant_store.py
import json
import logging
from typing import Dict, Iterable, List, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from .storage_interfaces import AbstractTenantStore
from .models import Tenant, TenantDocument, TenantSeed
from .seed import load_seed_wards
from ..errors import StorageUnavailableError
from ..storage.redis_base import change_channel_name, create_redis_client, redis_key

logger = logging.getLogger(__name__)


class RedisTenantStore(AbstractTenantStore):
    """
    Redis-based ward storage with live change publication.

    Layout:
        {prefix}:ward:{id}      hash with fields name, passphrase, data
        {prefix}:wards          set of ward ids
        {prefix}:passphrases    hash passphrase -> ward id

    Every successful replace_document is published on the ward's change
    channel, so subscribed clients see the new plan without polling.
    """

    publishes_changes = True

    def __init__(self, redis_client: Optional[aioredis.Redis] = None):
        self._redis_client = redis_client
        self._owns_client = redis_client is None

    @staticmethod
    def _ward_key(tenant_id: str) -> str:
        return redis_key("ward", tenant_id)

    @staticmethod
    def _index_key() -> str:
        return redis_key("wards")

    @staticmethod
    def _passphrase_key() -> str:
        return redis_key("passphrases")

    def _client(self) -> aioredis.Redis:
        if self._redis_client is None:
            logger.error("Redis client not initialized. Call initialize() first.")
            raise StorageUnavailableError("Ward store is not connected.")
        return self._redis_client

    async def initialize(self, seeds: Optional[Iterable[TenantSeed]] = None) -> None:
        """
        Connect (unless a client was injected) and seed missing wards.

        Every write is insert-if-absent, so the seed pass runs on each start:
        a pass cut short by a connection error is completed by the next one,
        and wards that already exist are never touched.
        """
        seed_list = list(seeds) if seeds is not None else load_seed_wards()
        try:
            if self._redis_client is None:
                self._redis_client = await create_redis_client()
            client = self._client()

            empty_document = json.dumps(TenantDocument().to_wire())
            inserted = 0
            for seed in seed_list:
                ward_key = self._ward_key(seed.id)
                # HSETNX per field: a concurrent seeder never overwrites what the other wrote
                created = await client.hsetnx(ward_key, "passphrase", seed.effective_passphrase)
                await client.hsetnx(ward_key, "name", seed.name)
                await client.hsetnx(ward_key, "data", empty_document)
                await client.hsetnx(self._passphrase_key(), seed.effective_passphrase, seed.id)
                await client.sadd(self._index_key(), seed.id)
                inserted += int(bool(created))
        except RedisError as e:
            logger.error(f"Failed to initialize RedisTenantStore: {e}", exc_info=True)
            raise StorageUnavailableError(f"Ward store unavailable: {e}") from e

        if inserted:
            logger.info(f"RedisTenantStore seeded {inserted} ward(s).")
        logger.info("RedisTenantStore initialized.")

    async def teardown(self) -> None:
        if self._owns_client and self._redis_client is not None:
            logger.info("Closing Redis connection.")
            await self._redis_client.aclose()
            self._redis_client = None
        logger.info("RedisTenantStore teardown complete.")

    def _hash_to_tenant(self, tenant_id: str, fields: Dict[str, str]) -> Optional[Tenant]:
        if not fields:
            return None
        document = TenantDocument()
        raw_data = fields.get("data")
        if raw_data:
            try:
                document = TenantDocument.model_validate(json.loads(raw_data))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Stored plan for ward '{tenant_id}' is unreadable, using an empty plan: {e}")
        return Tenant(
            id=tenant_id,
            name=fields.get("name", tenant_id),
            passphrase=fields.get("passphrase", ""),
            data=document,
        )

    async def find_by_id(self, tenant_id: str) -> Optional[Tenant]:
        try:
            fields = await self._client().hgetall(self._ward_key(tenant_id))
        except RedisError as e:
            logger.error(f"Redis error loading ward '{tenant_id}': {e}", exc_info=True)
            raise StorageUnavailableError(f"Ward store unavailable: {e}") from e
        return self._hash_to_tenant(tenant_id, fields)

    async def find_by_passphrase(self, candidate: str) -> Optional[Tenant]:
        try:
            tenant_id = await self._client().hget(self._passphrase_key(), candidate)
        except RedisError as e:
            logger.error(f"Redis error during passphrase lookup: {e}", exc_info=True)
            raise StorageUnavailableError(f"Ward store unavailable: {e}") from e
        if not tenant_id:
            return None
        return await self.find_by_id(tenant_id)

    async def replace_document(self, tenant_id: str, document: TenantDocument) -> bool:
        client = self._client()
        ward_key = self._ward_key(tenant_id)
        serialized = json.dumps(document.to_wire())
        try:
            if not await client.exists(ward_key):
                logger.warning(f"replace_document: ward '{tenant_id}' does not exist.")
                return False
            await client.hset(ward_key, "data", serialized)
            receivers = await client.publish(change_channel_name(tenant_id), serialized)
        except RedisError as e:
            logger.error(f"Redis error writing plan for ward '{tenant_id}': {e}", exc_info=True)
            raise StorageUnavailableError(f"Ward store unavailable: {e}") from e
        logger.debug(f"replace_document: ward '{tenant_id}' overwritten, {receivers} live receiver(s).")
        return True

    async def list_tenants(self) -> List[Tenant]:
        try:
            tenant_ids = await self._client().smembers(self._index_key())
        except RedisError as e:
            logger.error(f"Redis error listing wards: {e}", exc_info=True)
            raise StorageUnavailableError(f"Ward store unavailable: {e}") from e
        tenants = []
        for tenant_id in sorted(tenant_ids):
            tenant = await self.find_by_id(tenant_id)
            if tenant is not None:
                tenants.append(tenant)
        return tenants
