from __future__ import annotations


class LyricsError(RuntimeError):
    pass


class QueryTooShort(LyricsError):
    def __init__(self, query: str, min_length: int):
        super().__init__(f"Query {query!r} is shorter than {min_length} characters")
        self.query = query
        self.min_length = min_length


class ProviderError(LyricsError):
    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderUnavailable(ProviderError):
    pass


class AuthExpired(ProviderError):
    pass


class ParseFailure(ProviderError):
    pass


class CacheError(LyricsError):
    pass
