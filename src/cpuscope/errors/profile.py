from cpuscope.errors.base import CpuscopeBaseError


class ProfileError(CpuscopeBaseError):
    """Base class for CPU profile related errors."""

    pass


class MalformedProfileError(ProfileError):
    def __init__(self, reason: str) -> None:
        super().__init__(
            dev_message=f"Invalid CPU profile format: {reason}",
            user_message=(
                "The CPU profile could not be read. Make sure it is a Chrome/V8 `.cpuprofile` JSON file "
                "with `nodes` and `samples` arrays."
            ),
        )
