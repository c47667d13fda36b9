from cpuscope.errors.base import CpuscopeBaseError

# Raised inside the source-map resolver only. The resolver catches these at its
# boundary and turns them into unresolved locations.


class SourceMapError(CpuscopeBaseError):
    """Base class for source-map lookup errors."""

    pass


class SourceMapFetchError(SourceMapError):
    def __init__(self, locator: str, reason: str) -> None:
        super().__init__(
            dev_message=f"Failed to fetch {locator}: {reason}",
            user_message=f"Could not retrieve {locator}.",
        )
        self.locator: str = locator


class SourceMapParseError(SourceMapError):
    def __init__(self, locator: str, reason: str) -> None:
        super().__init__(
            dev_message=f"Failed to parse source map for {locator}: {reason}",
            user_message=f"The source map for {locator} is not a valid version 3 source map.",
        )
        self.locator: str = locator
