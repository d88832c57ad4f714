"""Event source reading contract logs over JSON-RPC.

Large ranges are split into windows of `chunk_size` blocks because most
public endpoints cap eth_getLogs ranges.
"""

import logging
from typing import Optional

from vault_migrator.chain.abi import EVENTS
from vault_migrator.chain.rpc import JsonRpcClient, RpcError, RpcUnavailable
from vault_migrator.errors import SourceQueryError, SourceUnavailable
from vault_migrator.source.base import BlockTag, EventSource, MigrationEvent

logger = logging.getLogger(__name__)


class RpcEventSource(EventSource):
    """Reads migration events with eth_getLogs."""

    def __init__(self, rpc: JsonRpcClient, chunk_size: int = 5000):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.rpc = rpc
        self.chunk_size = chunk_size

    async def fetch_events(
        self,
        source_address: str,
        event_signature: str,
        from_block: BlockTag = 0,
        to_block: BlockTag = "latest",
    ) -> list[MigrationEvent]:
        event_abi = EVENTS.get(event_signature)
        if event_abi is None:
            raise SourceQueryError(f"Unknown event: {event_signature}")

        try:
            start = await self._resolve_block(from_block)
            end = await self._resolve_block(to_block)
        except RpcUnavailable as e:
            raise SourceUnavailable(str(e)) from e
        except RpcError as e:
            raise SourceQueryError(f"Cannot resolve block range: {e.message}") from e

        if start > end:
            raise SourceQueryError(f"Invalid block range: {start} > {end}")

        logger.info(f"Scanning {event_abi.name} logs of {source_address} in blocks {start}-{end}")

        events: list[MigrationEvent] = []
        window_start = start
        while window_start <= end:
            window_end = min(window_start + self.chunk_size - 1, end)
            try:
                logs = await self.rpc.get_logs(
                    source_address, [event_abi.topic], window_start, window_end
                )
            except RpcUnavailable as e:
                raise SourceUnavailable(str(e)) from e
            except RpcError as e:
                raise SourceQueryError(
                    f"eth_getLogs rejected blocks {window_start}-{window_end}: {e.message}"
                ) from e

            for log in logs:
                events.append(self._to_event(event_abi, log))

            if logs:
                logger.debug(f"Blocks {window_start}-{window_end}: {len(logs)} logs")
            window_start = window_end + 1

        events.sort(key=lambda e: e.sort_key)
        logger.info(f"Found {len(events)} {event_abi.name} events")
        return events

    async def _resolve_block(self, block: BlockTag) -> int:
        if isinstance(block, int):
            return block
        if block in ("latest", "safe", "finalized", "pending"):
            return await self.rpc.block_number()
        if block == "earliest":
            return 0
        try:
            return int(block, 0)
        except ValueError:
            raise SourceQueryError(f"Invalid block reference: {block}")

    @staticmethod
    def _to_event(event_abi, log: dict) -> MigrationEvent:
        try:
            values = event_abi.decode_log(log)
        except Exception as e:
            raise SourceQueryError(
                f"Cannot decode log {log.get('transactionHash')}:{log.get('logIndex')}: {e}"
            ) from e

        return MigrationEvent(
            user=values.get("user"),
            amount=values.get("amount", 0),
            timestamp=values.get("timestamp", 0),
            block_number=_hex_to_int(log.get("blockNumber")),
            log_index=_hex_to_int(log.get("logIndex")),
            tx_hash=log.get("transactionHash"),
        )


def _hex_to_int(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16)
