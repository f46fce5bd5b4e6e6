from __future__ import annotations
from typing import Iterable, Optional

from backoffice.datastore.changefeed import ChangeFeed
from backoffice.datastore.orders import OrderTable


class DataPlatform:
    """Bundle of the persistence session factory and the change feed.

    `perms` narrows what the returned table gateway may write; None means the
    privileged service role (seed scripts, tests).
    """

    def __init__(self, session_factory, feed: Optional[ChangeFeed] = None):
        self.session_factory = session_factory
        self.feed = feed or ChangeFeed()

    def orders(self, perms: Optional[Iterable[str]] = None) -> OrderTable:
        return OrderTable(self.session_factory, self.feed, perms=perms)
