"""Tests for generated conversion code."""

import os

import pytest

from protoconv.generator import parse
from protoconv.generator.python import render
from protoconv.runtime import ConversionError, ConversionPanic
from protoconv.tests.fixtures import helpers, wire

FILE_DIR = os.path.dirname(os.path.realpath(__file__))
FIXTURES_DIR = os.path.join(os.path.dirname(FILE_DIR), "fixtures")


def gen_code(file_name):
    gbl = globals().copy()

    with open(file_name) as f:
        text = f.read()

    generated_code = render(parse(text), runtime_import="protoconv.runtime")
    exec(generated_code, gbl)
    return gbl


@pytest.fixture(scope="module")
def gen():
    return gen_code(os.path.join(FIXTURES_DIR, "scenarios.pconv"))


def describe_transparent():
    def rewraps_wire_value(expect, gen):
        Track, TrackId = gen["Track"], gen["TrackId"]
        track = Track.from_proto(wire.Track(track_id=7))
        expect(track) == Track(id=TrackId(7))

    def unwraps_to_renamed_wire_field(expect, gen):
        Track, TrackId = gen["Track"], gen["TrackId"]
        expect(Track(id=TrackId(7)).to_proto()) == wire.Track(track_id=7)


def describe_auto_error():
    def missing_field_returns_error(expect, gen):
        User, UserConversionError = gen["User"], gen["UserConversionError"]
        with pytest.raises(UserConversionError) as exc:
            User.from_proto(wire.User(email=None, name="ann"))
        expect(exc.value) == UserConversionError.missing_field("email")
        expect(exc.value.variant) == "MissingField"
        expect(exc.value.field) == "email"
        expect(str(exc.value)) == "Missing required field: email"
        expect(isinstance(exc.value, ConversionError)) == True

    def present_field_converts(expect, gen):
        User = gen["User"]
        user = User.from_proto(wire.User(email="ann@example.com", name="ann"))
        expect(user) == User(email="ann@example.com", name="ann")
        expect(user.to_proto()) == wire.User(email="ann@example.com", name="ann")

    def error_type_has_single_variant(expect, gen):
        expect(gen["UserConversionError"].variants) == ("MissingField",)
        expect(gen["MixedConversionError"].variants) == ("MissingField",)


def describe_default():
    def absent_value_uses_default_function(expect, gen):
        Config = gen["Config"]
        config = Config.from_proto(wire.Config(timeout=None))
        expect(config) == Config(timeout=30)

    def reverse_conversion_emits_value(expect, gen):
        Config = gen["Config"]
        expect(Config(timeout=30).to_proto()) == wire.Config(timeout=30)

    def present_value_wins(expect, gen):
        expect(gen["Config"].from_proto(wire.Config(timeout=5)).timeout) == 5


def describe_panic():
    def absent_value_aborts_with_field_name(expect, gen):
        with pytest.raises(ConversionPanic) as exc:
            gen["Session"].from_proto(wire.Session(token=None, user_id=1))
        expect("token" in str(exc.value)) == True
        expect(isinstance(exc.value, ConversionError)) == False

    def present_value_never_aborts(expect, gen):
        session = gen["Session"].from_proto(wire.Session(token="abc", user_id=1))
        expect(session.token) == "abc"

    def panic_before_error_short_circuits(expect, gen):
        Mixed = gen["Mixed"]
        with pytest.raises(ConversionPanic):
            Mixed.from_proto(wire.Mixed(first=None, second=None))

    def later_error_is_reached_when_panic_field_is_present(expect, gen):
        Mixed, MixedConversionError = gen["Mixed"], gen["MixedConversionError"]
        with pytest.raises(MixedConversionError):
            Mixed.from_proto(wire.Mixed(first="a", second=None))


def describe_collections():
    def converts_elements(expect, gen):
        Playlist, Track, TrackId, Status = gen["Playlist"], gen["Track"], gen["TrackId"], gen["Status"]
        message = wire.Playlist(
            tracks=[wire.Track(track_id=1), wire.Track(track_id=2)],
            tags=["a", "b"],
            scores={"x": 1},
            statuses=[1, 0],
        )
        playlist = Playlist.from_proto(message)
        expect(playlist.tracks) == [Track(id=TrackId(1)), Track(id=TrackId(2))]
        expect(playlist.tags) == ["a", "b"]
        expect(playlist.scores) == {"x": 1}
        expect(playlist.statuses) == [Status.Inactive, Status.Active]

    def empty_sequence_is_absent_for_nullable_wrapper(expect, gen):
        playlist = gen["Playlist"].from_proto(wire.Playlist(tags=[]))
        expect(playlist.tags) == None

    def absent_native_becomes_empty_sequence(expect, gen):
        Playlist = gen["Playlist"]
        message = Playlist(tracks=[], tags=None, scores={}, statuses=[]).to_proto()
        expect(message.tags) == []

    def round_trips(expect, gen):
        message = wire.Playlist(
            tracks=[wire.Track(track_id=3)],
            tags=["rock"],
            scores={"a": 2},
            statuses=[0],
        )
        expect(gen["Playlist"].from_proto(message).to_proto()) == message


def describe_envelope():
    def copies_wire_types_and_converts_enums(expect, gen):
        Envelope, Status = gen["Envelope"], gen["Status"]
        header = wire.Header(request_id="r1")
        envelope = Envelope.from_proto(wire.Envelope(header=header, note=None, status=1, previous=0, label="x"))
        expect(envelope.header) == header
        expect(envelope.note) == None
        expect(envelope.status) == Status.Inactive
        expect(envelope.previous) == Status.Active
        expect(envelope.label) == "x"

    def absent_native_values_for_required_wire_fields(expect, gen):
        Envelope, Status = gen["Envelope"], gen["Status"]
        message = Envelope(header=wire.Header(), status=Status.Active).to_proto()
        expect(message) == wire.Envelope(header=wire.Header(), note=None, status=0, previous=None, label="")


def describe_custom_error_type():
    def uses_struct_error_constructor(expect, gen):
        with pytest.raises(helpers.ProfileError) as exc:
            gen["Profile"].from_proto(wire.Profile(nickname=None, age=3))
        expect(exc.value.field) == "nickname"
        expect(exc.value.reason) == "missing"

    def field_error_fn_wins(expect, gen):
        with pytest.raises(helpers.ProfileError) as exc:
            gen["Profile"].from_proto(wire.Profile(nickname="n", age=None))
        expect(exc.value.reason) == "age not provided"


def describe_ignore():
    def ignored_fields_get_defaults(expect, gen):
        account = gen["Account"].from_proto(wire.AccountRecord(id=4))
        expect(account.id) == 4
        expect(account.audit) == ["created"]
        expect(account.cache) == {}

    def ignored_fields_are_omitted_from_wire(expect, gen):
        Account = gen["Account"]
        expect(Account(id=4, cache={"k": 1}).to_proto()) == wire.AccountRecord(id=4)


def describe_custom_functions():
    def applies_both_directions(expect, gen):
        Event = gen["Event"]
        event = Event.from_proto(wire.Event(at="12", label="go"))
        expect(event.at) == helpers.Timestamp(12)
        expect(event.label) == "GO"
        expect(event.to_proto()) == wire.Event(at="12", label="GO")


def describe_enums_and_newtypes():
    def enum_mirrors_wire_numbers(expect, gen):
        Status = gen["Status"]
        expect(Status.from_proto(1)) == Status.Inactive
        expect(Status.Inactive.to_proto()) == 1

    def newtype_wraps_value(expect, gen):
        TrackId = gen["TrackId"]
        expect(TrackId.from_proto(9).to_proto()) == 9


def describe_field_names():
    def field_named_field_keeps_factories_working(expect):
        text = """
            module protoconv.tests.fixtures.wire
            struct Slot {
                field: Optional[int]
                @ignore entries: list[str]
            }
        """
        gbl = globals().copy()
        exec(render(parse(text), runtime_import="protoconv.runtime"), gbl)
        Slot = gbl["Slot"]
        slot = Slot.from_proto(wire.Slot(field=3))
        expect(slot) == Slot(field=3, entries=[])
        expect(Slot().entries) == []
        expect(slot.to_proto()) == wire.Slot(field=3)
