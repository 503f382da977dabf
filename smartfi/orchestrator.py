import asyncio
import logging
import time
from typing import Dict, Iterable, Optional

from smartfi.models import AggregateRecord, FetchState, SourceKey, parse_payload
from smartfi.utils.error_handler import LoginRequiredError, SmartFiError

logger = logging.getLogger(__name__)


class AggregateFetchOrchestrator:
    """
    Fans the five source fetches out through one DataSourceClient and merges
    the successes into a single AggregateRecord.

    Each key carries a monotonically increasing token. Only the call holding
    the latest token for its key may touch that key's record entry or state,
    so a slow response never overwrites a newer one.
    """

    def __init__(self, client):
        self.client = client
        self._record = AggregateRecord()
        self._states: Dict[SourceKey, FetchState] = {key: FetchState() for key in SourceKey}
        self._tokens: Dict[SourceKey, int] = {key: 0 for key in SourceKey}

    def _is_latest(self, key: SourceKey, token: int) -> bool:
        return self._tokens[key] == token

    async def fetch_one(self, key: SourceKey) -> None:
        key = SourceKey(key)
        self._tokens[key] += 1
        token = self._tokens[key]
        self._states[key] = FetchState(loading=True)

        try:
            raw = await self.client.call(key.tool_name)
        except asyncio.CancelledError:
            if self._is_latest(key, token):
                self._states[key] = FetchState(error="Request cancelled")
            raise
        except LoginRequiredError as e:
            if self._is_latest(key, token):
                self._states[key] = FetchState(error=str(e), login_url=e.login_url)
            return
        except SmartFiError as e:
            if self._is_latest(key, token):
                self._states[key] = FetchState(error=str(e))
            return
        except Exception as e:
            logger.exception(f"Unexpected failure fetching {key.value}")
            if self._is_latest(key, token):
                self._states[key] = FetchState(error=str(e) or type(e).__name__)
            return

        if not self._is_latest(key, token):
            logger.debug(f"Discarding stale {key.value} response (token {token}, latest {self._tokens[key]})")
            return

        self._record.set(key, parse_payload(key, raw))
        self._states[key] = FetchState()

    async def fetch_all(self, keys: Optional[Iterable[SourceKey]] = None) -> None:
        """Fetch every source concurrently; returns once all of them have settled."""
        keys = list(keys) if keys is not None else list(SourceKey)
        logger.info(f"Fetching {len(keys)} sources.")
        start_time = time.time()

        await asyncio.gather(*(self.fetch_one(key) for key in keys))

        failed = [key.value for key in keys if self._states[key].error]
        elapsed = time.time() - start_time
        if failed:
            logger.warning(f"Fetch completed in {elapsed:.2f} seconds with failures: {', '.join(failed)}")
        else:
            logger.info(f"Fetch completed in {elapsed:.2f} seconds.")

    def reset(self) -> None:
        """Drop all data and state. Responses still in flight are discarded when they land."""
        for key in SourceKey:
            self._tokens[key] += 1
            self._states[key] = FetchState()
        self._record.clear()

    def snapshot(self) -> AggregateRecord:
        return self._record.copy()

    def states(self) -> Dict[SourceKey, FetchState]:
        return {key: state.model_copy() for key, state in self._states.items()}

    def state(self, key: SourceKey) -> FetchState:
        return self._states[SourceKey(key)].model_copy()

    @property
    def is_loading(self) -> bool:
        return any(state.loading for state in self._states.values())
