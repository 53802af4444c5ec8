import enum
import functools
import importlib.util
import os

from .error import (
    DeserializeError,
    Kind,
    MappingError,
    NoExtensionError,
    NotEnabledError,
    NotUnicodeError,
    SerializeError,
    UnknownExtensionError,
)


# third-party modules a backend imports, by format name
_REQUIRES = {
    "JSON5": ("json5",),
    "TOML": ("tomli_w",),
    "YAML": ("yaml",),
}


@functools.cache
def _available(module):
    return importlib.util.find_spec(module) is not None


def extension_of(path):
    """Return the extension of the final component of `path`, without its
    leading period.

    Raises `NoExtensionError` if there is none and `NotUnicodeError` if it
    cannot be represented as text."""

    name = os.path.basename(os.fspath(path))
    ext = os.path.splitext(name)[1]
    if not ext:
        raise NoExtensionError()
    if isinstance(ext, bytes):
        try:
            ext = ext.decode("utf-8")
        except UnicodeDecodeError:
            raise NotUnicodeError() from None
    else:
        try:
            ext.encode("utf-8")
        except UnicodeEncodeError:
            raise NotUnicodeError() from None
    return ext[1:]


class Format(enum.Enum):
    """A supported configuration file format.

    Each member's value holds its recognized file extensions, lowercase and
    without a leading period."""

    JSON = ("json",)
    JSON5 = ("json5",)
    RON = ("ron",)
    TOML = ("toml",)
    YAML = ("yaml", "yml")

    def __str__(self):
        return self.name

    @property
    def extensions(self):
        return list(self.value)

    def has_extension(self, ext):
        ext = ext.removeprefix(".").lower()
        return ext in self.value

    def is_enabled(self):
        return all(_available(module) for module in _REQUIRES.get(self.name, ()))

    @classmethod
    def all(cls):
        return tuple(cls)

    @classmethod
    def enabled(cls):
        return tuple(f for f in cls if f.is_enabled())

    @classmethod
    def from_extension(cls, ext):
        return next((f for f in cls if f.has_extension(ext)), None)

    @classmethod
    def from_name(cls, name):
        for f in cls:
            if f.name.lower() == name.lower():
                return f
        raise ValueError(f"unknown format {name!r}")

    @classmethod
    def identify(cls, path):
        """Determine the format of `path` from its file extension."""

        ext = extension_of(path)
        f = cls.from_extension(ext)
        if f is None:
            raise UnknownExtensionError(ext)
        if not f.is_enabled():
            raise NotEnabledError(f)
        return f

    def _backend(self):
        if not self.is_enabled():
            raise NotEnabledError(self)
        if self is Format.JSON:
            from . import json as backend
        elif self is Format.JSON5:
            from . import json5 as backend
        elif self is Format.RON:
            from . import ron as backend
        elif self is Format.TOML:
            from . import toml as backend
        else:
            from . import yaml as backend
        return backend

    def dumps(self, obj, T):
        """Serialize `obj` of type `T` to a string, ending in a newline."""

        backend = self._backend()
        try:
            s = backend.dumps(obj, T)
        except MappingError as e:
            raise SerializeError(self, e.message, e.context) from e
        except backend.EncodeError as e:
            raise SerializeError(self, str(e)) from e
        except RecursionError as e:
            raise SerializeError(self, "nesting too deep") from e
        return s if s.endswith("\n") else s + "\n"

    def dump(self, f, obj, T):
        s = self.dumps(obj, T)
        try:
            f.write(s)
        except UnicodeEncodeError as e:
            raise SerializeError(self, str(e)) from e
        except OSError as e:
            raise SerializeError(self, str(e), kind=Kind.IO) from e

    def loads(self, s, T):
        """Deserialize a value of type `T` from the string `s`."""

        backend = self._backend()
        try:
            return backend.loads(s, T)
        except MappingError as e:
            raise DeserializeError(self, e.message, e.context) from e
        except backend.DecodeError as e:
            raise DeserializeError(self, str(e)) from e
        except RecursionError as e:
            raise DeserializeError(self, "nesting too deep") from e

    def load(self, f, T):
        backend = self._backend()
        try:
            return backend.load(f, T)
        except MappingError as e:
            raise DeserializeError(self, e.message, e.context) from e
        except UnicodeDecodeError as e:
            raise DeserializeError(self, f"input is not valid UTF-8: {e}") from e
        except OSError as e:
            raise DeserializeError(self, str(e), kind=Kind.IO) from e
        except backend.DecodeError as e:
            raise DeserializeError(self, str(e)) from e
        except RecursionError as e:
            raise DeserializeError(self, "nesting too deep") from e
