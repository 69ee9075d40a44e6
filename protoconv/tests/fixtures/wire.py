"""Wire types standing in for schema compiler output.

Optional scalar fields default to None (unset); repeated and map fields are
always present.
"""

from dataclasses import dataclass, field


@dataclass
class Track:
    track_id: int = 0


@dataclass
class User:
    email: str | None = None
    name: str = ""


@dataclass
class Config:
    timeout: int | None = None


@dataclass
class Session:
    token: str | None = None
    user_id: int = 0


@dataclass
class Mixed:
    first: str | None = None
    second: str | None = None


@dataclass
class Playlist:
    tracks: list[Track] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    scores: dict[str, int] = field(default_factory=dict)
    statuses: list[int] = field(default_factory=list)


@dataclass
class Header:
    request_id: str = ""


@dataclass
class Envelope:
    header: Header = field(default_factory=Header)
    note: str | None = None
    status: int = 0
    previous: int | None = None
    label: str = ""


@dataclass
class Profile:
    nickname: str | None = None
    age: int | None = None


@dataclass
class AccountRecord:
    id: int = 0


@dataclass
class Event:
    at: str = ""
    label: str = ""


@dataclass
class Slot:
    field: int | None = None
