from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

log = logging.getLogger(__name__)

Fetch = Callable[[], list]
Listener = Callable[[list], None]
ErrorListener = Callable[[Exception], None]


class Subscription:
    """Handle returned by ``ChangeFeed.subscribe``; call ``unsubscribe`` to tear it down."""

    def __init__(self, feed: "ChangeFeed", key: tuple[str, int], fetch: Fetch, listener: Listener,
                 on_error: Optional[ErrorListener]):
        self._feed = feed
        self.key = key
        self.fetch = fetch
        self.listener = listener
        self.on_error = on_error
        self.active = True
        self._state_lock = threading.Lock()
        self._pending = False
        self._delivering = False

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._feed._remove(self)


class ChangeFeed:
    """In-process snapshot subscriptions keyed by (collection, tenant_id).

    A subscriber gets the full snapshot once on subscribe and again after
    every published change to its key. Delivery is synchronous. Publishes
    that arrive while a subscription is already being delivered to are
    coalesced: the delivering thread fetches again, so the last snapshot a
    listener sees is always read after the last publish.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subs: dict[tuple[str, int], list[Subscription]] = {}

    def subscribe(
        self,
        collection: str,
        tenant_id: int,
        fetch: Fetch,
        listener: Listener,
        on_error: Optional[ErrorListener] = None,
    ) -> Subscription:
        key = (collection, int(tenant_id))
        sub = Subscription(self, key, fetch, listener, on_error)
        with self._lock:
            self._subs.setdefault(key, []).append(sub)
        log.debug("feed_subscribed collection=%s tenant=%s", collection, tenant_id)
        self._deliver(sub)
        return sub

    def publish(self, collection: str, tenant_id: int) -> None:
        with self._lock:
            subs = list(self._subs.get((collection, int(tenant_id)), ()))
        for sub in subs:
            self._deliver(sub)

    def subscriber_count(self, collection: str, tenant_id: int) -> int:
        with self._lock:
            return len(self._subs.get((collection, int(tenant_id)), ()))

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.key)
            if subs and sub in subs:
                subs.remove(sub)
                if not subs:
                    del self._subs[sub.key]

    def _deliver(self, sub: Subscription) -> None:
        with sub._state_lock:
            sub._pending = True
            if sub._delivering:
                return
            sub._delivering = True
        try:
            while True:
                with sub._state_lock:
                    if not (sub._pending and sub.active):
                        sub._delivering = False
                        return
                    sub._pending = False
                self._fetch_and_notify(sub)
        except BaseException:
            with sub._state_lock:
                sub._delivering = False
            raise

    def _fetch_and_notify(self, sub: Subscription) -> None:
        try:
            snapshot = sub.fetch()
        except Exception as exc:
            log.error("feed_snapshot_failed collection=%s tenant=%s error=%s", sub.key[0], sub.key[1], exc)
            if sub.on_error is not None:
                sub.on_error(exc)
            return
        try:
            sub.listener(snapshot)
        except Exception:
            log.exception("feed_listener_failed collection=%s tenant=%s", sub.key[0], sub.key[1])
