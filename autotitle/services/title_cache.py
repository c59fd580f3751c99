from __future__ import annotations


class TitleCache:
    """URL -> title map that evicts the oldest-inserted entry when full.

    Eviction follows insertion order only; reads and overwrites of an existing
    key do not refresh its position.
    """

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._titles: dict[str, str] = {}

    def get(self, url: str) -> str | None:
        return self._titles.get(url)

    def put(self, url: str, title: str) -> None:
        if url not in self._titles and len(self._titles) >= self.capacity:
            oldest = next(iter(self._titles))
            del self._titles[oldest]
        self._titles[url] = title

    def clear(self) -> None:
        self._titles.clear()

    def __contains__(self, url: object) -> bool:
        return url in self._titles

    def __len__(self) -> int:
        return len(self._titles)
