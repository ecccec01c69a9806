"""Per-key request numbering used to drop stale responses."""


class RequestSequencer:
    """
    Issues monotonically increasing tickets per query key.

    Only the holder of the latest ticket for a key may apply its result;
    earlier responses that resolve late are discarded.
    """

    def __init__(self) -> None:
        self._latest: dict[str, int] = {}

    def issue(self, key: str) -> int:
        ticket = self._latest.get(key, 0) + 1
        self._latest[key] = ticket
        return ticket

    def is_latest(self, key: str, ticket: int) -> bool:
        return self._latest.get(key) == ticket
