"""User-side functions referenced from declaration files."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Timestamp:
    seconds: int


class ProfileError(Exception):
    def __init__(self, field: str, reason: str = "missing") -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    @classmethod
    def missing(cls, field: str) -> "ProfileError":
        return cls(field)


def age_missing(field: str) -> ProfileError:
    return ProfileError(field, reason="age not provided")


def default_timeout() -> int:
    return 30


def new_audit_log() -> list[str]:
    return ["created"]


def parse_timestamp(value: str) -> Timestamp:
    return Timestamp(int(value))


def format_timestamp(value: Timestamp) -> str:
    return str(value.seconds)


def shout(value: str) -> str:
    return value.upper()
