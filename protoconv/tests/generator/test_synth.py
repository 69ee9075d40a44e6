"""Tests for generated code fragments."""

from protoconv.generator import compile_struct
from protoconv.generator.types import ExpectMode, FieldDirectives, FieldSchema, StructSchema, TypeRef

INT = TypeRef("int")
STR = TypeRef("str")


def optional(t):
    return TypeRef("Optional", [t])


def make_field(name, t=INT, wire_optional=False, **directives):
    return FieldSchema(name=name, type=t, directives=FieldDirectives(**directives), wire_optional=wire_optional)


def compile_one(registry, f, **struct_options):
    struct = StructSchema(name="Sample", fields=[f], **struct_options)
    unit = compile_struct(struct, registry)
    return unit, unit.fragments[0]


def describe_from_proto():
    def direct_reads_attribute(expect, registry):
        _, fragment = compile_one(registry, make_field("count"))
        expect(fragment.from_proto) == ["_val_count = message.count"]

    def optional_wire_reads_through_wire_field(expect, registry):
        _, fragment = compile_one(registry, make_field("note", t=optional(STR), wire_optional=True))
        expect(fragment.from_proto) == ['_val_note = wire_field(message, "note")']

    def renamed_field_reads_wire_name(expect, registry):
        _, fragment = compile_one(registry, make_field("id", proto_name="track_id"))
        expect(fragment.from_proto) == ["_val_id = message.track_id"]
        expect(fragment.wire_name) == "track_id"

    def enum_converts(expect, registry):
        _, fragment = compile_one(registry, make_field("status", t=TypeRef("Status")))
        expect(fragment.from_proto) == ["_val_status = Status.from_proto(message.status)"]
        expect(fragment.to_proto) == "self.status.to_proto()"

    def transparent_rewraps(expect, registry):
        _, fragment = compile_one(registry, make_field("id", t=TypeRef("TrackId"), transparent=True))
        expect(fragment.from_proto) == ["_val_id = TrackId(message.id)"]
        expect(fragment.to_proto) == "transparent_inner(self.id)"

    def panic_names_the_field(expect, registry):
        unit, fragment = compile_one(registry, make_field("token", t=STR, wire_optional=True))
        expect(fragment.from_proto) == [
            '_raw_token = wire_field(message, "token")',
            "if _raw_token is None:",
            '    raise ConversionPanic("Proto field token is required")',
            "_val_token = _raw_token",
        ]
        expect(unit.runtime_names) == {"wire_field", "ConversionPanic"}

    def auto_error_raises_missing_field(expect, registry):
        unit, fragment = compile_one(
            registry, make_field("email", t=STR, wire_optional=True, expect=ExpectMode.ERROR)
        )
        expect(fragment.from_proto[2]) == '    raise SampleConversionError.missing_field("email")'
        expect("ConversionError" in unit.runtime_names) == True

    def custom_error_calls_constructor(expect, registry):
        _, fragment = compile_one(
            registry,
            make_field("email", t=STR, wire_optional=True, expect=ExpectMode.ERROR),
            error_type="AccountError",
            error_fn="AccountError.missing",
        )
        expect(fragment.from_proto[2]) == '    raise AccountError.missing("email")'

    def default_applies_function(expect, registry):
        _, fragment = compile_one(
            registry, make_field("timeout", wire_optional=True, default=True, default_ref="default_timeout")
        )
        expect(fragment.from_proto) == [
            '_raw_timeout = wire_field(message, "timeout")',
            "_val_timeout = default_timeout() if _raw_timeout is None else _raw_timeout",
        ]
        expect(fragment.to_proto) == "self.timeout"

    def bare_default_uses_type_default(expect, registry):
        _, fragment = compile_one(registry, make_field("name", t=STR, wire_optional=True, default=True))
        expect(fragment.from_proto[1]) == '_val_name = "" if _raw_name is None else _raw_name'

    def custom_function_with_fallback(expect, registry):
        _, fragment = compile_one(registry, make_field("label", t=STR, from_proto_fn="helpers.shout"))
        expect(fragment.from_proto) == ["_val_label = helpers.shout(message.label)"]
        expect(fragment.to_proto) == "self.label"

    def ignored_field_uses_default(expect, registry):
        _, fragment = compile_one(registry, make_field("audit", t=TypeRef("list", [STR]), ignore=True))
        expect(fragment.from_proto) == ["_val_audit = []"]
        expect(fragment.to_proto) == None
        expect(fragment.declaration_default) == "field(default_factory=list)"

    def ignored_enum_takes_first_member(expect, registry):
        _, fragment = compile_one(registry, make_field("status", t=TypeRef("Status"), ignore=True))
        expect(fragment.from_proto) == ["_val_status = next(iter(Status))"]


def describe_collections():
    def primitive_sequence_copies(expect, registry):
        _, fragment = compile_one(registry, make_field("tags", t=TypeRef("list", [STR])))
        expect(fragment.from_proto) == ["_raw_tags = message.tags", "_val_tags = list(_raw_tags)"]
        expect(fragment.to_proto) == "list(self.tags)"

    def enum_sequence_converts_elements(expect, registry):
        _, fragment = compile_one(registry, make_field("statuses", t=TypeRef("list", [TypeRef("Status")])))
        expect(fragment.from_proto[1]) == (
            "_val_statuses = [Status.from_proto(_item0) for _item0 in _raw_statuses]"
        )
        expect(fragment.to_proto) == "[_item0.to_proto() for _item0 in self.statuses]"

    def nullable_sequence_collapses_empty(expect, registry):
        _, fragment = compile_one(registry, make_field("tags", t=optional(TypeRef("list", [STR]))))
        expect(fragment.from_proto[1]) == "_val_tags = None if not _raw_tags else list(_raw_tags)"
        expect(fragment.to_proto) == "[] if self.tags is None else list(self.tags)"

    def map_converts_values(expect, registry):
        _, fragment = compile_one(registry, make_field("tracks", t=TypeRef("dict", [STR, TypeRef("Track")])))
        expect(fragment.from_proto[1]) == (
            "_val_tracks = {_key0: Track.from_proto(_item0) for _key0, _item0 in _raw_tracks.items()}"
        )
        expect(fragment.to_proto) == "{_key0: _item0.to_proto() for _key0, _item0 in self.tracks.items()}"

    def map_converts_enum_keys(expect, registry):
        _, fragment = compile_one(registry, make_field("counts", t=TypeRef("dict", [TypeRef("Status"), INT])))
        expect(fragment.from_proto[1]) == (
            "_val_counts = {Status.from_proto(_key0): _item0 for _key0, _item0 in _raw_counts.items()}"
        )
        expect(fragment.to_proto) == "{_key0.to_proto(): _item0 for _key0, _item0 in self.counts.items()}"

    def primitive_map_copies(expect, registry):
        _, fragment = compile_one(registry, make_field("scores", t=TypeRef("dict", [STR, INT])))
        expect(fragment.from_proto[1]) == "_val_scores = dict(_raw_scores)"
        expect(fragment.to_proto) == "dict(self.scores)"

    def nested_sequences_use_distinct_names(expect, registry):
        t = TypeRef("list", [TypeRef("list", [TypeRef("Status")])])
        _, fragment = compile_one(registry, make_field("grid", t=t))
        expect(fragment.from_proto[1]) == (
            "_val_grid = [[Status.from_proto(_item1) for _item1 in _item0] for _item0 in _raw_grid]"
        )


def describe_native_to_wire():
    def omits_ignored_fields(expect, registry):
        struct = StructSchema(
            name="Account",
            fields=[make_field("id"), make_field("cache", t=TypeRef("dict", [STR, INT]))],
            ignore_fields=["cache"],
        )
        unit = compile_struct(struct, registry)
        expect(unit.to_proto_arguments) == ["id=self.id"]
        expect(unit.constructor_arguments) == ["id=_val_id", "cache=_val_cache"]

    def required_wire_gets_default_for_absent_native(expect, registry):
        _, fragment = compile_one(registry, make_field("label", t=optional(STR), proto_required=True))
        expect(fragment.from_proto) == ["_val_label = message.label"]
        expect(fragment.to_proto) == '"" if self.label is None else self.label'

    def wire_type_path_uses_struct_module(expect, registry):
        struct = StructSchema(name="Track", fields=[], wire_module="myapp.proto", wire_name="TrackMessage")
        unit = compile_struct(struct, registry)
        expect(unit.wire_type) == "myapp.proto.TrackMessage"


def describe_tracing():
    def emits_generated_fragment(expect, registry, tracer, sink):
        struct = StructSchema(name="Sample", fields=[make_field("count")])
        compile_struct(struct, registry, tracer=tracer)
        generated = [e for e in sink.events if e.phase == "generated"]
        expect(len(generated)) == 1
        expect(generated[0].fragment) == "_val_count = message.count\nto_proto: count=self.count"

    def wraps_struct_in_enter_and_exit(expect, registry, tracer, sink):
        struct = StructSchema(name="Sample", fields=[make_field("count")])
        compile_struct(struct, registry, tracer=tracer)
        expect(sink.events[0].phase) == "enter"
        expect(sink.events[-1].phase) == "exit"
