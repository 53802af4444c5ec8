import base64
import dataclasses
import datetime
import enum
import inspect
import types
import typing

from .error import MappingError


DATETYPES = (datetime.date, datetime.time, datetime.datetime)


@dataclasses.dataclass(frozen=True)
class Options:
    # date/time types the codec represents natively; others become ISO strings
    native: tuple[type, ...] = ()
    # lower records, enum members and present optionals to marker types
    annotate: bool = False


class Record(dict):
    pass


class Symbol(str):
    pass


@dataclasses.dataclass(frozen=True)
class Some:
    value: typing.Any


def field(context, name):
    return f"{context}.{name}" if context else name


def mismatch(context, expect, got):
    return MappingError(f"expects {expect}, got {got}", context)


def assert_isinstance(obj, types, context):
    if not isinstance(types, tuple):
        types = (types,)
    if not any(type(obj) is T for T in types):
        raise mismatch(
            context,
            expect=" or ".join(T.__name__ for T in types),
            got=type(obj).__name__,
        )


def assert_in(obj, options, context):
    if obj not in options:
        raise mismatch(
            context, expect="one of " + ", ".join(map(repr, options)), got=repr(obj)
        )


class Mapping(typing.Protocol):
    def lower(self, obj: typing.Any, context: str) -> typing.Any: ...

    def unlower(self, obj: typing.Any, context: str) -> typing.Any: ...


def mapping_for(T, context, options=Options()) -> Mapping:
    if T is typing.Any:
        return Passthrough()

    if T in (int, float, bool, str, type(None)):
        return Primitive(T)

    if typing.get_origin(T) == typing.Literal:
        return Literal(typing.get_args(T))

    if T is complex:
        return Complex()

    if T is bytes:
        return Bytes()

    if typing.get_origin(T) in (typing.Union, types.UnionType):
        members = list(typing.get_args(T))
        if type(None) in members:
            members.remove(type(None))
            T = typing.Union[tuple(members)] if len(members) > 1 else members[0]
            return Optional(mapping_for(T, context, options), options.annotate)
        tags = {}
        for option in members:
            if typing.get_origin(option) == typing.Annotated:
                option, name = typing.get_args(option)
                if not isinstance(name, str):
                    raise MappingError("invalid or unsupported annotation", context)
            else:
                name = option.__name__
            tags[name] = option, mapping_for(option, f"{context}({name})", options)
        return Union(tags)

    if typing.get_origin(T) is list:
        (item_type,) = typing.get_args(T)
        return List(mapping_for(item_type, context, options))

    if typing.get_origin(T) is tuple:
        item_types = typing.get_args(T)
        if len(item_types) == 2 and item_types[1] == ...:
            return UniformTuple(mapping_for(item_types[0], context, options))
        return Tuple(
            tuple(
                mapping_for(item_type, f"{context}[{i}]", options)
                for i, item_type in enumerate(item_types)
            )
        )

    if typing.get_origin(T) is dict:
        key_type, value_type = typing.get_args(T)
        if key_type is str:
            return Dict(mapping_for(value_type, context, options))

    if dataclasses.is_dataclass(T) and isinstance(T, type):
        hints = typing.get_type_hints(T, include_extras=True)
        fields = [f for f in dataclasses.fields(T) if f.init]
        return DataClass(
            T,
            {
                f.name: mapping_for(hints[f.name], field(context, f.name), options)
                for f in fields
            },
            frozenset(
                f.name
                for f in fields
                if f.default is not dataclasses.MISSING
                or f.default_factory is not dataclasses.MISSING
            ),
            options.annotate,
        )

    if T in DATETYPES:
        if T in options.native:
            return Primitive(T)
        return DateTime(T)

    if isinstance(T, type) and issubclass(T, enum.Enum):
        return Enum(T, options.annotate)

    if isinstance(T, inspect.Signature):
        return Signature(
            T,
            {
                param.name: mapping_for(
                    param.annotation, field(context, param.name), options
                )
                for param in T.parameters.values()
            },
            options.annotate,
        )

    if hasattr(T, "__reduce__"):
        try:
            ret = inspect.signature(T.__reduce__).return_annotation
        except (TypeError, ValueError):
            ret = None
        if typing.get_origin(ret) is tuple and len(typing.get_args(ret)) == 2:
            f, args = typing.get_args(ret)
            if (
                typing.get_origin(f) is type
                and typing.get_args(f) == (typing.Self,)
                and typing.get_origin(args) is tuple
                and len(typing.get_args(args)) == 1
            ):
                (annotation,) = typing.get_args(args)
                return Reduce(T, mapping_for(annotation, context, options))

    raise MappingError(f"cannot find a mapping for type {T!r}", context)


class Passthrough:
    def lower(self, obj, context):
        return obj

    def unlower(self, obj, context):
        return obj


@dataclasses.dataclass
class Primitive:
    T: typing.Any

    def lower(self, obj, context):
        assert_isinstance(obj, self.T, context)
        return obj

    def unlower(self, obj, context):
        if self.T is float and type(obj) is int:
            return float(obj)
        assert_isinstance(obj, self.T, context)
        return obj


@dataclasses.dataclass
class Literal:
    options: tuple[typing.Any, ...]

    def lower(self, obj, context):
        assert_in(obj, self.options, context)
        return obj

    def unlower(self, obj, context):
        assert_in(obj, self.options, context)
        return obj


class Complex:
    def lower(self, obj, context):
        assert_isinstance(obj, complex, context)
        if not obj.imag:
            return obj.real
        return dict(real=obj.real, imag=obj.imag)

    def unlower(self, obj, context):
        assert_isinstance(obj, (float, int, dict), context)
        if not isinstance(obj, dict):
            return complex(obj)
        if len(obj) == 2 and all(
            type(obj.get(s)) in (int, float) for s in ("real", "imag")
        ):
            return complex(obj["real"], obj["imag"])
        raise mismatch(
            context,
            expect="numerical dictionary values 'real' and 'imag'",
            got=repr(obj),
        )


class Bytes:
    def lower(self, obj, context):
        assert_isinstance(obj, bytes, context)
        try:
            s = obj.decode("utf8")
        except UnicodeDecodeError:
            return base64.b85encode(obj).decode()
        else:
            return "utf8:" + s

    def unlower(self, obj, context):
        assert_isinstance(obj, str, context)
        if obj.startswith("utf8:"):
            return obj[5:].encode("utf8")
        try:
            return base64.b85decode(obj)
        except ValueError:
            raise mismatch(context, expect="base85 data", got=repr(obj)) from None


@dataclasses.dataclass
class Optional:
    mapping: Mapping
    annotate: bool = False

    def lower(self, obj, context):
        if obj is None:
            return None
        value = self.mapping.lower(obj, context)
        return Some(value) if self.annotate else value

    def unlower(self, obj, context):
        if obj is None:
            return None
        return self.mapping.unlower(obj, context)


@dataclasses.dataclass
class Union:
    options: dict[str, tuple[typing.Any, Mapping]]

    def lower(self, obj, context):
        for name, (T, mapping) in self.options.items():
            if type(obj) is T:
                return {name: mapping.lower(obj, f"{context}({name})")}
        raise mismatch(
            context, expect="one of " + ", ".join(self.options), got=type(obj).__name__
        )

    def unlower(self, obj, context):
        assert_isinstance(obj, dict, context)
        if len(obj) != 1:
            raise mismatch(context, expect="a single dictionary item", got=len(obj))
        ((k, v),) = obj.items()
        assert_in(k, self.options, context)
        T, mapping = self.options[k]
        return mapping.unlower(v, f"{context}({k})")


@dataclasses.dataclass
class List:
    mapping: Mapping

    def lower(self, obj, context):
        assert_isinstance(obj, list, context)
        return [
            self.mapping.lower(item, f"{context}[{i}]") for i, item in enumerate(obj)
        ]

    def unlower(self, obj, context):
        assert_isinstance(obj, list, context)
        return [
            self.mapping.unlower(item, f"{context}[{i}]") for i, item in enumerate(obj)
        ]


@dataclasses.dataclass
class Tuple:
    mappings: tuple[Mapping, ...]

    def check_length(self, obj, context):
        if len(obj) != len(self.mappings):
            raise mismatch(context, expect=f"{len(self.mappings)} items", got=len(obj))

    def lower(self, obj, context):
        assert_isinstance(obj, tuple, context)
        self.check_length(obj, context)
        return [
            mapping.lower(item, f"{context}[{i}]")
            for i, (item, mapping) in enumerate(zip(obj, self.mappings))
        ]

    def unlower(self, obj, context):
        assert_isinstance(obj, list, context)
        self.check_length(obj, context)
        return tuple(
            mapping.unlower(item, f"{context}[{i}]")
            for i, (item, mapping) in enumerate(zip(obj, self.mappings))
        )


@dataclasses.dataclass
class UniformTuple:
    mapping: Mapping

    def lower(self, obj, context):
        assert_isinstance(obj, tuple, context)
        return [
            self.mapping.lower(item, f"{context}[{i}]") for i, item in enumerate(obj)
        ]

    def unlower(self, obj, context):
        assert_isinstance(obj, list, context)
        return tuple(
            self.mapping.unlower(item, f"{context}[{i}]") for i, item in enumerate(obj)
        )


@dataclasses.dataclass
class Dict:
    mapping: Mapping

    def lower(self, obj, context):
        assert_isinstance(obj, dict, context)
        return {k: self.mapping.lower(v, f"{context}[{k}]") for k, v in obj.items()}

    def unlower(self, obj, context):
        assert_isinstance(obj, dict, context)
        for k in obj:
            assert_isinstance(k, str, f"{context}[{k}]")
        return {k: self.mapping.unlower(v, f"{context}[{k}]") for k, v in obj.items()}


@dataclasses.dataclass
class DataClass:
    cls: type
    fields: dict[str, Mapping]
    defaults: frozenset[str]
    annotate: bool = False

    def lower(self, obj, context):
        if type(obj) is not self.cls:
            raise mismatch(context, expect=self.cls.__name__, got=type(obj).__name__)
        d = {
            name: mapping.lower(getattr(obj, name), field(context, name))
            for name, mapping in self.fields.items()
        }
        return Record(d) if self.annotate else d

    def unlower(self, obj, context):
        assert_isinstance(obj, dict, context)
        kwargs = {}
        for name, mapping in self.fields.items():
            if name in obj:
                kwargs[name] = mapping.unlower(obj[name], field(context, name))
            elif name in self.defaults:
                pass
            elif isinstance(mapping, Optional):
                kwargs[name] = None
            else:
                raise MappingError(f"missing field {name!r}", context)
        return self.cls(**kwargs)


@dataclasses.dataclass
class DateTime:
    datetype: type

    def lower(self, obj, context):
        assert_isinstance(obj, self.datetype, context)
        return obj.isoformat()

    def unlower(self, obj, context):
        assert_isinstance(obj, str, context)
        try:
            return self.datetype.fromisoformat(obj)
        except ValueError:
            raise mismatch(
                context, expect=f"an ISO formatted {self.datetype.__name__}", got=repr(obj)
            ) from None


@dataclasses.dataclass
class Enum:
    E: type
    annotate: bool = False

    def lower(self, obj, context):
        assert_isinstance(obj, self.E, context)
        return Symbol(obj.name) if self.annotate else obj.name

    def unlower(self, obj, context):
        assert_isinstance(obj, str, context)
        assert_in(obj, self.E.__members__, context)
        return self.E[obj]


@dataclasses.dataclass
class Signature:
    signature: inspect.Signature
    mappings: dict[str, Mapping]
    annotate: bool = False

    def lower(self, obj, context):
        assert_isinstance(obj, inspect.BoundArguments, context)
        d = {
            name: self.mappings[name].lower(v, field(context, name))
            for name, v in obj.arguments.items()
        }
        return Record(d) if self.annotate else d

    def unlower(self, obj, context):
        assert_isinstance(obj, dict, context)
        kwargs = {
            name: self.mappings[name].unlower(obj[name], field(context, name))
            for name in self.mappings
            if name in obj
        }
        try:
            return self.signature.bind(**kwargs)
        except TypeError as e:
            raise MappingError(str(e), context) from None


@dataclasses.dataclass
class Reduce:
    T: type
    mapping: Mapping

    def lower(self, obj, context):
        f, args = obj.__reduce__()
        if f is not self.T:
            raise MappingError(
                f"reduction returned function {f}, expected {self.T}", context
            )
        if len(args) != 1:
            raise MappingError(
                f"reduction returned a tuple of length {len(args)}, expected 1", context
            )
        return self.mapping.lower(args[0], context)

    def unlower(self, obj, context):
        return self.T(self.mapping.unlower(obj, context))
