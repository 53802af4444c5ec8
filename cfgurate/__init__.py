__version__ = "0.1"

import dataclasses
import typing

from ._format import Format, extension_of
from .error import (
    CfgurateError,
    CodecError,
    DeserializeError,
    DumpError,
    FileError,
    IdentifyError,
    Kind,
    LoadError,
    MappingError,
    NoExtensionError,
    NotEnabledError,
    NotUnicodeError,
    SerializeError,
    Stage,
    UnknownExtensionError,
)


@dataclasses.dataclass(frozen=True)
class Cfgurate:
    """Loads and dumps files in the first of `formats` matching their
    extension, or in `fallback` if there is no match.

    Instances are immutable; `with_formats` and `with_fallback` return
    modified copies. Concurrent calls on one path are not coordinated."""

    formats: tuple[Format, ...] = tuple(Format)
    fallback: typing.Optional[Format] = None

    def __post_init__(self):
        object.__setattr__(self, "formats", tuple(self.formats))

    def with_formats(self, formats):
        return dataclasses.replace(self, formats=tuple(formats))

    def with_fallback(self, fallback):
        return dataclasses.replace(self, fallback=fallback)

    def identify(self, path):
        try:
            ext = extension_of(path)
        except IdentifyError:
            if self.fallback is not None:
                return self.fallback
            raise
        for fmt in self.formats:
            if fmt.has_extension(ext):
                if fmt.is_enabled():
                    return fmt
                if self.fallback is not None:
                    return self.fallback
                raise NotEnabledError(fmt)
        if self.fallback is not None:
            return self.fallback
        raise UnknownExtensionError(ext)

    def _resolve(self, path):
        fmt = self.identify(path)
        if not fmt.is_enabled():
            raise NotEnabledError(fmt)
        return fmt

    def load(self, path, T):
        try:
            fmt = self._resolve(path)
        except IdentifyError as e:
            raise LoadError(Stage.IDENTIFY, path, e) from e
        try:
            f = open(path, "r", encoding="utf-8")
        except OSError as e:
            raise LoadError(Stage.OPEN, path, e) from e
        with f:
            try:
                return fmt.load(f, T)
            except DeserializeError as e:
                raise LoadError(Stage.DESERIALIZE, path, e) from e

    def dump(self, path, obj, T):
        try:
            fmt = self._resolve(path)
        except IdentifyError as e:
            raise DumpError(Stage.IDENTIFY, path, e) from e
        try:
            f = open(path, "w", encoding="utf-8", newline="")
        except OSError as e:
            raise DumpError(Stage.OPEN, path, e) from e
        try:
            with f:
                try:
                    fmt.dump(f, obj, T)
                except SerializeError as e:
                    raise DumpError(Stage.SERIALIZE, path, e) from e
                f.flush()
        except OSError as e:
            raise DumpError(Stage.FLUSH, path, e) from e


def identify(path):
    return Cfgurate().identify(path)


def load(path, T):
    return Cfgurate().load(path, T)


def dump(path, obj, T):
    return Cfgurate().dump(path, obj, T)
