"""Presence sinks: where payloads end up.

The only real sink is Discord over local IPC via pypresence.  Everything the
publisher needs to know about failures is one of two exceptions.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pypresence import Presence
from pypresence import exceptions as rpc_errors

from poe2_drpc.presence import PresencePayload

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "550890770056347648"


class SinkUnavailable(Exception):
    """The sink could not be reached (not running, pipe closed, timeout)."""


class PresenceRejected(Exception):
    """The sink was reachable but refused the payload."""


class PresenceSink(Protocol):
    def connect(self) -> None: ...

    def update(self, payload: PresencePayload) -> None: ...

    def clear(self) -> None: ...

    def close(self) -> None: ...


# Errors where retrying the same payload cannot help
_REJECTED = (rpc_errors.InvalidArgument, rpc_errors.ArgumentError, rpc_errors.ServerError)


class DiscordPresenceSink:
    """Discord rich presence over IPC.

    The pypresence client is created lazily inside ``connect`` so that it
    binds its event loop on the publisher's worker thread.
    """

    def __init__(self, client_id: str = DEFAULT_CLIENT_ID, timeout: float = 10.0) -> None:
        self._client_id = client_id
        self._timeout = timeout
        self._rpc: Presence | None = None

    def connect(self) -> None:
        self.close()
        try:
            rpc = Presence(self._client_id, connection_timeout=self._timeout,
                           response_timeout=self._timeout)
            rpc.connect()
        except rpc_errors.InvalidID as e:
            raise SinkUnavailable(f"Discord rejected client id {self._client_id}: {e}") from e
        except (rpc_errors.PyPresenceException, OSError) as e:
            raise SinkUnavailable(f"Discord not reachable: {e}") from e
        self._rpc = rpc
        logger.info("Connected to Discord RPC")

    def update(self, payload: PresencePayload) -> None:
        rpc = self._require()
        try:
            rpc.update(**payload.as_kwargs())
        except _REJECTED as e:
            raise PresenceRejected(str(e)) from e
        except (rpc_errors.PyPresenceException, OSError) as e:
            self._rpc = None
            raise SinkUnavailable(f"Discord update failed: {e}") from e

    def clear(self) -> None:
        rpc = self._require()
        try:
            rpc.clear()
        except (rpc_errors.PyPresenceException, OSError) as e:
            self._rpc = None
            raise SinkUnavailable(f"Discord clear failed: {e}") from e

    def close(self) -> None:
        if self._rpc is None:
            return
        rpc, self._rpc = self._rpc, None
        try:
            rpc.close()
        except (rpc_errors.PyPresenceException, OSError, AttributeError) as e:
            logger.debug("Error closing Discord RPC: %s", e)

    def _require(self) -> Presence:
        if self._rpc is None:
            raise SinkUnavailable("Not connected to Discord")
        return self._rpc
