import io
import math
import os
import pathlib
import runpy
import tempfile
from contextlib import redirect_stdout
from dataclasses import dataclass, field
from datetime import date, datetime, time
from doctest import DocFileSuite
from enum import Enum
from inspect import signature
from typing import Annotated, Any, Dict, List, Literal, Optional, Self, Tuple, Type, Union
from unittest import TestCase, mock

import cfgurate
from cfgurate import (
    Cfgurate,
    DeserializeError,
    DumpError,
    Format,
    LoadError,
    NoExtensionError,
    NotEnabledError,
    NotUnicodeError,
    SerializeError,
    Stage,
    UnknownExtensionError,
    _format,
    _ron,
)
from cfgurate._mapping import Options, Record, Some, Symbol, mapping_for
from cfgurate.error import Kind, MappingError


def load_tests(loader, tests, ignore):
    tests.addTests(DocFileSuite("README.md"))
    return tests


TEXT = (
    "This is test text.\nThis is a new line.\n\tThis is an indented line.\n"
    "This is a snowman with a goat: ☃\U0001f410."
)


@dataclass
class Primitives:
    integer: int
    float: float
    boolean: bool
    text: str
    none: Optional[int]
    some: Optional[int]
    list: List[int]
    dict: Dict[str, str]


class Color(Enum):
    red = 1
    green = 2
    blue = 3


@dataclass
class Request:
    id: int
    resource: str
    operation: str


@dataclass
class Response:
    id: int
    value: str


@dataclass
class Enums:
    color: Color
    msg: Union[Request, Response]


@dataclass
class Person:
    id: int
    given_name: str
    family_name: str


@dataclass
class Config:
    primitives: Primitives
    enums: Enums
    people: List[Person]


@dataclass
class Note:
    text: str


def config():
    return Config(
        primitives=Primitives(
            integer=42,
            float=1.618,
            boolean=True,
            text=TEXT,
            none=None,
            some=17,
            list=[1, 2, 6, 15, 36],
            dict={"hello": "goodbye", "strange": "charmed", "up": "down"},
        ),
        enums=Enums(color=Color.green, msg=Response(id=60069, value="Foobar")),
        people=[
            Person(1, "Alice", "Alison"),
            Person(2, "Bob", "Bobson"),
            Person(3, "Charlie", "McCharles"),
        ],
    )


class Registry(TestCase):
    def test_names(self):
        for f, name in (
            (Format.JSON, "JSON"),
            (Format.JSON5, "JSON5"),
            (Format.RON, "RON"),
            (Format.TOML, "TOML"),
            (Format.YAML, "YAML"),
        ):
            with self.subTest(name):
                self.assertEqual(str(f), name)
                for s in name, name.lower(), name.capitalize():
                    self.assertIs(Format.from_name(s), f)

    def test_unknown_name(self):
        with self.assertRaises(ValueError):
            Format.from_name("ini")

    def test_extensions(self):
        self.assertEqual(Format.JSON.extensions, ["json"])
        self.assertEqual(Format.JSON5.extensions, ["json5"])
        self.assertEqual(Format.RON.extensions, ["ron"])
        self.assertEqual(Format.TOML.extensions, ["toml"])
        self.assertEqual(Format.YAML.extensions, ["yaml", "yml"])

    def test_extension_spelling(self):
        for f in Format.all():
            for ext in f.extensions:
                with self.subTest(ext):
                    self.assertTrue(ext)
                    self.assertEqual(ext, ext.lower())
                    self.assertNotIn(".", ext)

    def test_has_extension(self):
        for f in Format.all():
            for ext in f.extensions:
                for variant in ext, "." + ext, ext.upper(), "." + ext.upper():
                    with self.subTest(variant):
                        self.assertTrue(f.has_extension(variant))
                        self.assertIs(Format.from_extension(variant), f)
        self.assertFalse(Format.JSON.has_extension("cfg"))
        self.assertFalse(Format.JSON.has_extension("json5"))

    def test_from_extension_unknown(self):
        for ext in "ini", "xml", "cfg", "jsn", "tml", "":
            with self.subTest(ext):
                self.assertIsNone(Format.from_extension(ext))

    def test_order(self):
        order = (Format.JSON, Format.JSON5, Format.RON, Format.TOML, Format.YAML)
        self.assertEqual(Format.all(), order)
        self.assertEqual(Format.enabled(), order)
        self.assertEqual(tuple(reversed(Format.enabled())), order[::-1])
        self.assertEqual(Format.all(), Format.all())

    def test_enabled(self):
        for f in Format.all():
            with self.subTest(str(f)):
                self.assertTrue(f.is_enabled())


class Identify(TestCase):
    def test_known(self):
        for f in Format.all():
            for ext in f.extensions:
                for path in (
                    f"file.{ext}",
                    f"dir/file.{ext.upper()}",
                    f"/dir/file.{ext.capitalize()}",
                    pathlib.Path("dir", f"file.{ext}"),
                    os.fsencode(f"file.{ext}"),
                ):
                    with self.subTest(path=path):
                        self.assertIs(Format.identify(path), f)
                        self.assertIs(cfgurate.identify(path), f)
                        self.assertIs(Cfgurate().identify(path), f)

    def test_unknown(self):
        for path, ext in (
            ("file.ini", "ini"),
            ("file.xml", "xml"),
            ("file.cfg", "cfg"),
            ("file.jsn", "jsn"),
            ("file.tml", "tml"),
            ("file.", ""),
        ):
            with self.subTest(path):
                with self.assertRaises(UnknownExtensionError) as cm:
                    Format.identify(path)
                self.assertEqual(cm.exception.extension, ext)
                with self.assertRaises(UnknownExtensionError) as cm:
                    Cfgurate().identify(path)
                self.assertEqual(cm.exception.extension, ext)

    def test_no_extension(self):
        for path in "file", "dir.d/file", ".bashrc", "":
            with self.subTest(path):
                with self.assertRaises(NoExtensionError):
                    Format.identify(path)
                with self.assertRaises(NoExtensionError):
                    Cfgurate().identify(path)

    def test_not_unicode(self):
        for path in b"file.js\xf6n", "file.js\udcf6n":
            with self.subTest(path=path):
                with self.assertRaises(NotUnicodeError):
                    Format.identify(path)
                with self.assertRaises(NotUnicodeError):
                    Cfgurate().identify(path)

    def test_messages(self):
        self.assertEqual(str(NoExtensionError()), "file does not have a file extension")
        self.assertEqual(str(NotUnicodeError()), "file extension is not valid Unicode")
        self.assertEqual(
            str(UnknownExtensionError("cfg")), "unknown file extension: 'cfg'"
        )
        self.assertEqual(
            str(NotEnabledError(Format.YAML)), "support for YAML is not enabled"
        )

    def test_restricted(self):
        c = Cfgurate().with_formats([Format.JSON, Format.TOML])
        self.assertIs(c.identify("file.json"), Format.JSON)
        self.assertIs(c.identify("file.TOML"), Format.TOML)
        for path in "file.json5", "file.ron", "file.yaml", "file.yml":
            with self.subTest(path):
                with self.assertRaises(UnknownExtensionError):
                    c.identify(path)

    def test_fallback(self):
        c = Cfgurate().with_formats([Format.JSON, Format.YAML]).with_fallback(Format.JSON)
        self.assertIs(c.identify("path/to/file.json"), Format.JSON)
        self.assertIs(c.identify("path/to/file.YML"), Format.YAML)
        for path in (
            "path/to/file.ron",
            "path/to/file.cfg",
            "path/to/file",
            "file.",
            b"file.js\xf6n",
        ):
            with self.subTest(path=path):
                self.assertIs(c.identify(path), Format.JSON)

    def test_builder(self):
        c = Cfgurate()
        self.assertEqual(c.formats, Format.all())
        self.assertIsNone(c.fallback)
        c2 = c.with_formats(iter([Format.RON])).with_fallback(Format.TOML)
        self.assertEqual(c2, Cfgurate(formats=(Format.RON,), fallback=Format.TOML))
        self.assertEqual(c, Cfgurate())
        self.assertEqual(Cfgurate(formats=[Format.RON]).formats, (Format.RON,))


class NotEnabled(TestCase):
    def setUp(self):
        patcher = mock.patch.object(
            _format, "_available", lambda module: module != "yaml"
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_registry(self):
        self.assertFalse(Format.YAML.is_enabled())
        self.assertTrue(Format.TOML.is_enabled())
        self.assertEqual(
            Format.enabled(), (Format.JSON, Format.JSON5, Format.RON, Format.TOML)
        )
        self.assertIn(Format.YAML, Format.all())
        self.assertIs(Format.from_extension("yml"), Format.YAML)

    def test_identify(self):
        for identify in Format.identify, Cfgurate().identify:
            with self.assertRaises(NotEnabledError) as cm:
                identify("file.yaml")
            self.assertIs(cm.exception.format, Format.YAML)

    def test_fallback(self):
        c = Cfgurate(fallback=Format.JSON)
        self.assertIs(c.identify("file.yml"), Format.JSON)

    def test_codec(self):
        with self.assertRaises(NotEnabledError):
            Format.YAML.loads("a: 1\n", Dict[str, int])
        with self.assertRaises(NotEnabledError):
            Format.YAML.dumps({"a": 1}, Dict[str, int])

    def test_load(self):
        with self.assertRaises(LoadError) as cm:
            cfgurate.load("file.yaml", Config)
        self.assertIs(cm.exception.stage, Stage.IDENTIFY)
        self.assertIsInstance(cm.exception.cause, NotEnabledError)

    def test_disabled_fallback(self):
        with self.assertRaises(DumpError) as cm:
            Cfgurate(fallback=Format.YAML).dump("file", config(), Config)
        self.assertIs(cm.exception.stage, Stage.IDENTIFY)
        self.assertIsInstance(cm.exception.cause, NotEnabledError)


class Codec(TestCase):
    fmt: Format
    text: str
    expect: Optional[str] = None
    trailing: str

    def test_loads(self):
        self.assertEqual(self.fmt.loads(self.text, Config), config())

    def test_load(self):
        self.assertEqual(self.fmt.load(io.StringIO(self.text), Config), config())

    def test_dumps(self):
        s = self.fmt.dumps(config(), Config)
        if self.expect is not None:
            self.assertEqual(s, self.expect)
        self.assertTrue(s.endswith("\n"))
        self.assertFalse(s.endswith("\n\n"))

    def test_dump(self):
        f = io.StringIO()
        self.fmt.dump(f, config(), Config)
        self.assertEqual(f.getvalue(), self.fmt.dumps(config(), Config))

    def test_roundtrip(self):
        s = self.fmt.dumps(config(), Config)
        self.assertEqual(self.fmt.loads(s, Config), config())

    def test_idempotent(self):
        value = self.fmt.loads(self.text, Config)
        s = self.fmt.dumps(value, Config)
        self.assertEqual(self.fmt.loads(s, Config), value)
        self.assertEqual(self.fmt.dumps(self.fmt.loads(s, Config), Config), s)

    def test_field_path(self):
        s = self.fmt.dumps(config(), Config).replace("42", "4.2", 1)
        with self.assertRaises(DeserializeError) as cm:
            self.fmt.loads(s, Config)
        e = cm.exception
        self.assertIs(e.format, self.fmt)
        self.assertIs(e.kind, Kind.SYNTAX)
        self.assertEqual(e.context, "primitives.integer")
        self.assertEqual(str(e), "primitives.integer: expects int, got float")
        self.assertIsInstance(e.__cause__, MappingError)

    def test_trailing_input(self):
        with self.assertRaises(DeserializeError) as cm:
            self.fmt.loads(self.text + self.trailing, Config)
        self.assertIs(cm.exception.format, self.fmt)
        self.assertEqual(cm.exception.context, "")

    def test_syntax_error(self):
        with self.assertRaises(DeserializeError):
            self.fmt.loads(self.text[: len(self.text) // 2], Config)

    def test_unserializable(self):
        with self.assertRaises(SerializeError) as cm:
            self.fmt.dumps(config(), Primitives)
        self.assertIs(cm.exception.format, self.fmt)
        self.assertIn("expects Primitives, got Config", str(cm.exception))

    def nested(self, depth):
        return "[" * depth + "]" * depth

    def test_load_too_deep(self):
        with self.assertRaises(DeserializeError) as cm:
            self.fmt.loads(self.nested(100000), Any)
        self.assertIs(cm.exception.format, self.fmt)
        with self.assertRaises(DeserializeError):
            self.fmt.load(io.StringIO(self.nested(100000)), Any)

    def test_dump_too_deep(self):
        value = []
        for _ in range(100000):
            value = [value]
        with self.assertRaises(SerializeError) as cm:
            self.fmt.dumps({"a": value}, Any)
        self.assertIs(cm.exception.format, self.fmt)


class Json(Codec):
    fmt = Format.JSON
    text = expect = r"""{
  "primitives": {
    "integer": 42,
    "float": 1.618,
    "boolean": true,
    "text": "This is test text.\nThis is a new line.\n\tThis is an indented line.\nThis is a snowman with a goat: ☃🐐.",
    "none": null,
    "some": 17,
    "list": [
      1,
      2,
      6,
      15,
      36
    ],
    "dict": {
      "hello": "goodbye",
      "strange": "charmed",
      "up": "down"
    }
  },
  "enums": {
    "color": "green",
    "msg": {
      "Response": {
        "id": 60069,
        "value": "Foobar"
      }
    }
  },
  "people": [
    {
      "id": 1,
      "given_name": "Alice",
      "family_name": "Alison"
    },
    {
      "id": 2,
      "given_name": "Bob",
      "family_name": "Bobson"
    },
    {
      "id": 3,
      "given_name": "Charlie",
      "family_name": "McCharles"
    }
  ]
}
"""
    trailing = "{}\n"

    def test_nonfinite(self):
        for x in math.nan, math.inf, -math.inf:
            with self.subTest(x), self.assertRaises(SerializeError) as cm:
                self.fmt.dumps(x, float)
            self.assertIsInstance(cm.exception.__cause__, ValueError)


class Json5(Codec):
    fmt = Format.JSON5
    text = r"""// A comment
{
  primitives: {
    "integer": 0x2A,
    "float": 1.618,
    "boolean": true,
    "text": 'This is test text.\nThis is a new line.\n\tThis is an indented line.\nThis is a snowman with a goat: ☃🐐.',
    "none": null,
    "some": 17,
    "list": [
      1,
      2,
      6,
      15,
      36,
    ],
    "dict": {
      hello: "goodbye",
      strange: "charmed",
      up: "down",
    },
  },
  "enums": {
    "color": "green",
    "msg": {
      Response: {
        "id": +60069,
        "value": "Foobar"
      }
    }
  },
  /* Who are these people, anyway? */
  "people": [
    {
      "id": 1,
      "given_name": "Alice",
      "family_name": "Alison",
    },
    {
      "id": 2,
      "given_name": "Bob",
      "family_name": "Bobson",
    },
    {
      "id": 3,
      "given_name": "Charlie",
      "family_name": "McCharles",
    },
  ],
}
"""
    trailing = "{}\n"


class Ron(Codec):
    fmt = Format.RON
    text = expect = r"""(
    primitives: (
        integer: 42,
        float: 1.618,
        boolean: true,
        text: "This is test text.\nThis is a new line.\n\tThis is an indented line.\nThis is a snowman with a goat: ☃🐐.",
        none: None,
        some: Some(17),
        list: [
            1,
            2,
            6,
            15,
            36,
        ],
        dict: {
            "hello": "goodbye",
            "strange": "charmed",
            "up": "down",
        },
    ),
    enums: (
        color: green,
        msg: {
            "Response": (
                id: 60069,
                value: "Foobar",
            ),
        },
    ),
    people: [
        (
            id: 1,
            given_name: "Alice",
            family_name: "Alison",
        ),
        (
            id: 2,
            given_name: "Bob",
            family_name: "Bobson",
        ),
        (
            id: 3,
            given_name: "Charlie",
            family_name: "McCharles",
        ),
    ],
)
"""
    trailing = "()\n"


class Toml(Codec):
    fmt = Format.TOML
    text = r'''[primitives]
integer = 42
float = 1.618
boolean = true
text = """
This is test text.
This is a new line.
\tThis is an indented line.
This is a snowman with a goat: ☃🐐."""
some = 17
list = [1, 2, 6, 15, 36]

[primitives.dict]
hello = "goodbye"
strange = "charmed"
up = "down"

[enums]
color = "green"

[enums.msg.Response]
id = 60069
value = "Foobar"

[[people]]
id = 1
given_name = "Alice"
family_name = "Alison"

[[people]]
id = 2
given_name = "Bob"
family_name = "Bobson"

[[people]]
id = 3
given_name = "Charlie"
family_name = "McCharles"
'''
    trailing = "garbage\n"

    def nested(self, depth):
        return "a = " + super().nested(depth)

    def test_layout(self):
        s = self.fmt.dumps(Person(1, "Alice", "Alison"), Person)
        self.assertEqual(s, 'id = 1\ngiven_name = "Alice"\nfamily_name = "Alison"\n')

    def test_none_omitted(self):
        s = self.fmt.dumps(config(), Config)
        self.assertNotIn("none", s)

    def test_table_required(self):
        with self.assertRaises(SerializeError) as cm:
            self.fmt.dumps([1, 2], List[int])
        self.assertIsInstance(cm.exception.__cause__, TypeError)

    def test_native_dates(self):
        @dataclass
        class Schedule:
            day: date
            at: time
            when: datetime

        value = Schedule(date(2025, 7, 27), time(9, 6, 40), datetime(2025, 7, 27, 9, 6, 40))
        s = self.fmt.dumps(value, Schedule)
        self.assertIn("day = 2025-07-27\n", s)
        self.assertIn("when = 2025-07-27T09:06:40\n", s)
        self.assertEqual(self.fmt.loads(s, Schedule), value)


class Yaml(Codec):
    fmt = Format.YAML
    text = r"""primitives:
  integer: 42
  float: 1.618
  boolean: true
  text: "This is test text.\nThis is a new line.\n\tThis is an indented line.\nThis is a snowman with a goat: ☃🐐."
  none: null
  some: 17
  list:
  - 1
  - 2
  - 6
  - 15
  - 36
  dict:
    hello: goodbye
    strange: charmed
    up: down
enums:
  color: green
  msg:
    Response:
      id: 60069
      value: Foobar
people:
- id: 1
  given_name: Alice
  family_name: Alison
- id: 2
  given_name: Bob
  family_name: Bobson
- id: 3
  given_name: Charlie
  family_name: McCharles
"""
    trailing = "---\nfoo: bar\n"

    def test_layout(self):
        s = self.fmt.dumps([Person(1, "Alice", "Alison")], List[Person])
        self.assertEqual(s, "- id: 1\n  given_name: Alice\n  family_name: Alison\n")

    def test_native_datetime(self):
        @dataclass
        class Event:
            when: datetime

        value = Event(datetime(2025, 7, 27, 9, 6, 40))
        s = self.fmt.dumps(value, Event)
        self.assertEqual(s, "when: 2025-07-27 09:06:40\n")
        self.assertEqual(self.fmt.loads(s, Event), value)


del Codec


class Files(TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = pathlib.Path(tmp.name)

    def test_dump_load(self):
        for f in Format.all():
            for ext in f.extensions:
                for name in f"config.{ext}", f"CONFIG.{ext.upper()}":
                    path = self.dir / name
                    with self.subTest(name):
                        cfgurate.dump(path, config(), Config)
                        s = path.read_text(encoding="utf-8")
                        self.assertEqual(s, f.dumps(config(), Config))
                        self.assertTrue(s.endswith("\n"))
                        self.assertFalse(s.endswith("\n\n"))
                        self.assertEqual(cfgurate.load(path, Config), config())

    def test_str_and_bytes_paths(self):
        path = self.dir / "config.json"
        cfgurate.dump(str(path), config(), Config)
        self.assertEqual(cfgurate.load(os.fsencode(path), Config), config())

    def test_fallback(self):
        c = Cfgurate(fallback=Format.YAML)
        path = self.dir / "config"
        c.dump(path, config(), Config)
        self.assertEqual(path.read_text(encoding="utf-8"), Format.YAML.dumps(config(), Config))
        self.assertEqual(c.load(path, Config), config())

    def test_overwrite(self):
        path = self.dir / "config.ron"
        path.write_text("x" * 10000, encoding="utf-8")
        cfgurate.dump(path, config(), Config)
        self.assertEqual(cfgurate.load(path, Config), config())

    def test_load_unidentified(self):
        with self.assertRaises(LoadError) as cm:
            cfgurate.load(self.dir / "config.ini", Config)
        e = cm.exception
        self.assertIs(e.stage, Stage.IDENTIFY)
        self.assertIsInstance(e.cause, UnknownExtensionError)
        self.assertIs(e.__cause__, e.cause)

    def test_load_missing(self):
        path = self.dir / "missing.json"
        with self.assertRaises(LoadError) as cm:
            cfgurate.load(path, Config)
        e = cm.exception
        self.assertIs(e.stage, Stage.OPEN)
        self.assertIsInstance(e.cause, FileNotFoundError)
        self.assertIs(e.__cause__, e.cause)
        self.assertEqual(e.path, path)
        self.assertTrue(str(e).startswith("failed to open file for reading "))

    def test_load_invalid(self):
        path = self.dir / "config.yaml"
        path.write_text("primitives: [\n", encoding="utf-8")
        with self.assertRaises(LoadError) as cm:
            cfgurate.load(path, Config)
        self.assertIs(cm.exception.stage, Stage.DESERIALIZE)
        self.assertIsInstance(cm.exception.cause, DeserializeError)
        self.assertIs(cm.exception.cause.format, Format.YAML)

    def test_load_field_path(self):
        path = self.dir / "config.json"
        path.write_text(Json.text.replace("42", "4.2", 1), encoding="utf-8")
        with self.assertRaises(LoadError) as cm:
            cfgurate.load(path, Config)
        self.assertIs(cm.exception.stage, Stage.DESERIALIZE)
        self.assertEqual(cm.exception.cause.context, "primitives.integer")
        self.assertIn("primitives.integer: expects int, got float", str(cm.exception))

    def test_load_not_utf8(self):
        path = self.dir / "config.json"
        path.write_bytes(b'{"text": "\xff"}')
        with self.assertRaises(LoadError) as cm:
            cfgurate.load(path, Dict[str, str])
        self.assertIs(cm.exception.stage, Stage.DESERIALIZE)
        self.assertIsInstance(cm.exception.cause.__cause__, UnicodeDecodeError)

    def test_dump_unidentified(self):
        with self.assertRaises(DumpError) as cm:
            cfgurate.dump(self.dir / "config", config(), Config)
        self.assertIs(cm.exception.stage, Stage.IDENTIFY)
        self.assertIsInstance(cm.exception.cause, NoExtensionError)
        self.assertFalse((self.dir / "config").exists())

    def test_dump_open(self):
        with self.assertRaises(DumpError) as cm:
            cfgurate.dump(self.dir / "missing" / "config.json", config(), Config)
        self.assertIs(cm.exception.stage, Stage.OPEN)
        self.assertIsInstance(cm.exception.cause, FileNotFoundError)

    def test_dump_serialize(self):
        with self.assertRaises(DumpError) as cm:
            cfgurate.dump(self.dir / "list.toml", [1, 2], List[int])
        self.assertIs(cm.exception.stage, Stage.SERIALIZE)
        self.assertIsInstance(cm.exception.cause, SerializeError)
        self.assertIs(cm.exception.cause.format, Format.TOML)

    def test_dump_write(self):
        class Full(io.StringIO):
            def write(self, s):
                raise OSError(28, "No space left on device")

        with mock.patch("cfgurate.open", create=True, return_value=Full()):
            with self.assertRaises(DumpError) as cm:
                cfgurate.dump("config.json", config(), Config)
        self.assertIs(cm.exception.stage, Stage.SERIALIZE)
        self.assertIs(cm.exception.cause.kind, Kind.IO)

    def test_dump_unencodable(self):
        for ext in "json", "json5", "ron", "toml":
            with self.subTest(ext):
                with self.assertRaises(DumpError) as cm:
                    cfgurate.dump(self.dir / f"note.{ext}", Note("a\ud800b"), Note)
                self.assertIs(cm.exception.stage, Stage.SERIALIZE)
                self.assertIsInstance(cm.exception.cause, SerializeError)

    def test_silent(self):
        path = self.dir / "config.json"
        with self.assertNoLogs(level="DEBUG"):
            cfgurate.dump(path, config(), Config)
            cfgurate.load(path, Config)
            with self.assertRaises(LoadError):
                cfgurate.load(self.dir / "config.ini", Config)

    def test_dump_flush(self):
        class Unflushable(io.StringIO):
            def flush(self):
                raise OSError(5, "Input/output error")

        with mock.patch("cfgurate.open", create=True, return_value=Unflushable()):
            with self.assertRaises(DumpError) as cm:
                cfgurate.dump("config.json", config(), Config)
        self.assertIs(cm.exception.stage, Stage.FLUSH)
        self.assertIsInstance(cm.exception.cause, OSError)


class Mapping(TestCase):
    def check(self, obj, T, options=Options()):
        m = mapping_for(T, "", options)
        low = m.lower(obj, "")
        high = m.unlower(low, "")
        self.assertEqual(high, obj)
        return low

    def test_primitive(self):
        for obj in "abc", 123, 1.5, True, False, None:
            T = type(obj)
            with self.subTest(T.__name__):
                self.assertEqual(self.check(obj, T), obj)

    def test_bool_is_not_int(self):
        with self.assertRaises(MappingError):
            mapping_for(int, "").unlower(True, "")

    def test_int_as_float(self):
        v = mapping_for(float, "").unlower(2, "")
        self.assertEqual(v, 2.0)
        self.assertIs(type(v), float)

    def test_any(self):
        obj = {"a": [1, "b", None]}
        self.assertEqual(self.check(obj, Any), obj)

    def test_literal(self):
        T = Literal["abc", 123]
        for obj in "abc", 123:
            self.assertEqual(self.check(obj, T), obj)
        with self.assertRaises(MappingError):
            mapping_for(T, "").unlower("xyz", "")

    def test_complex(self):
        self.assertEqual(self.check(1 + 2j, complex), dict(real=1.0, imag=2.0))
        self.assertEqual(self.check(3 + 0j, complex), 3.0)

    def test_bytes(self):
        self.assertEqual(self.check(b"abc", bytes), "utf8:abc")
        self.check(b"\xff\x00\x80", bytes)

    def test_list(self):
        self.assertEqual(self.check([1, 2, 3], List[int]), [1, 2, 3])

    def test_tuple(self):
        with self.subTest("uniform"):
            self.assertEqual(self.check((1, 2, 3), Tuple[int, ...]), [1, 2, 3])
        with self.subTest("pluriform"):
            self.assertEqual(self.check((123, "abc"), Tuple[int, str]), [123, "abc"])
        with self.subTest("length"):
            with self.assertRaises(MappingError):
                mapping_for(Tuple[int, str], "").unlower([1], "")

    def test_dict(self):
        self.assertEqual(
            self.check({"a": 10, "b": 20}, Dict[str, int]), {"a": 10, "b": 20}
        )

    def test_dataclass(self):
        @dataclass
        class A:
            i: int
            s: str

        self.assertEqual(self.check(A(123, "abc"), A), {"i": 123, "s": "abc"})

    def test_dataclass_defaults(self):
        @dataclass
        class A:
            i: int
            o: Optional[int]
            d: int = 5
            items: List[int] = field(default_factory=list)

        m = mapping_for(A, "")
        self.assertEqual(m.unlower({"i": 1}, ""), A(1, None, 5, []))
        with self.assertRaises(MappingError) as cm:
            m.unlower({"o": 1}, "")
        self.assertEqual(cm.exception.message, "missing field 'i'")

    def test_boundargs(self):
        def f(i: int, s: str):
            pass

        sig = signature(f)
        bound = sig.bind(123, "abc")
        self.assertEqual(self.check(bound, sig), {"i": 123, "s": "abc"})

    def test_union(self):
        for name in "optional", "union", "optional-union":
            is_union = name.endswith("union")
            is_optional = name.startswith("optional")
            with self.subTest(name):
                T = int
                if is_union:
                    T = Union[T, str]
                if is_optional:
                    T = Optional[T]
                    self.assertEqual(self.check(None, T), None)
                v = self.check(123, T)
                if is_union:
                    self.assertEqual(v, {"int": 123})
                    self.assertEqual(self.check("abc", T), {"str": "abc"})
                else:
                    self.assertEqual(v, 123)

    def test_union_syntax(self):
        self.assertEqual(self.check(None, int | None), None)
        self.assertEqual(self.check("abc", int | str), {"str": "abc"})

    def test_annotated_union(self):
        T = Union[Annotated[int, "number"], Annotated[str, "text"]]
        self.assertEqual(self.check(1, T), {"number": 1})
        self.assertEqual(self.check("a", T), {"text": "a"})

    def test_enum(self):
        class E(Enum):
            a = 1
            b = 2

        self.assertEqual(self.check(E.a, E), "a")
        self.assertEqual(self.check(E.b, E), "b")

    def test_datetime(self):
        when = datetime(2025, 7, 27, 9, 6, 40)
        self.assertEqual(self.check(when, datetime), "2025-07-27T09:06:40")
        self.assertEqual(self.check(when, datetime, Options(native=(datetime,))), when)
        with self.assertRaises(MappingError):
            mapping_for(date, "").unlower("yesterday", "")

    def test_reduce(self):
        class A:
            def __init__(self, x: List[int]):
                self.x = x

            def __reduce__(self) -> Tuple[Type[Self], Tuple[List[int]]]:
                return A, (self.x,)

            def __eq__(self, other):
                return isinstance(other, A) and other.x == self.x

        a = A([2, 3, 4])
        self.assertEqual(self.check(a, A), [2, 3, 4])

    def test_unsupported(self):
        with self.assertRaises(MappingError):
            mapping_for(set, "")

    def test_context(self):
        m = mapping_for(Config, "")
        for mutate, context in (
            (lambda d: d["people"][1].update(id="2"), "people[1].id"),
            (lambda d: d["primitives"]["dict"].update(up=1), "primitives.dict[up]"),
            (lambda d: d["primitives"]["list"].append(None), "primitives.list[5]"),
            (lambda d: d["enums"]["msg"]["Response"].update(id=1.5), "enums.msg(Response).id"),
            (lambda d: d["enums"].update(color="purple"), "enums.color"),
        ):
            with self.subTest(context):
                d = m.lower(config(), "")
                mutate(d)
                with self.assertRaises(MappingError) as cm:
                    m.unlower(d, "")
                self.assertEqual(cm.exception.context, context)

    def test_annotate(self):
        low = mapping_for(Enums, "", Options(annotate=True)).lower(
            Enums(Color.red, Request(1, "r", "get")), ""
        )
        self.assertIs(type(low), Record)
        self.assertIs(type(low["color"]), Symbol)
        self.assertIs(type(low["msg"]["Request"]), Record)
        some = mapping_for(Optional[int], "", Options(annotate=True)).lower(3, "")
        self.assertEqual(some, Some(3))


class RonCodec(TestCase):
    def test_syntax(self):
        text = r"""#![enable(implicit_some)]
// line comment
/* block /* nested */ comment */
Config(
    unit: (),
    tuple: (1, "two", 3.0,),
    newtype: Wrapper(5),
    named: Point(x: 1, y: -2),
    variant: Green,
    raw: r#"a "raw" string"#,
    raw_field: r#type,
    char: 'x',
    escape: '\'',
    numbers: [0x2A, 0o17, 0b101, 1_000, -7, +3, 1e3, .5, 2., inf, -inf],
    unicode: "\u{2603}é\x41",
    optional: Some(Some(1)),
    nothing: None,
    bools: [true, false],
    map: {1: "one", "two": 2,},
    empty: [],
    empty_map: {},
)
"""
        value = _ron.loads(text)
        self.assertEqual(value["unit"], {})
        self.assertEqual(value["tuple"], [1, "two", 3.0])
        self.assertEqual(value["newtype"], 5)
        self.assertEqual(value["named"], {"x": 1, "y": -2})
        self.assertEqual(value["variant"], "Green")
        self.assertEqual(value["raw"], 'a "raw" string')
        self.assertEqual(value["raw_field"], "type")
        self.assertEqual(value["char"], "x")
        self.assertEqual(value["escape"], "'")
        self.assertEqual(
            value["numbers"][:9], [42, 15, 5, 1000, -7, 3, 1000.0, 0.5, 2.0]
        )
        self.assertEqual(value["numbers"][9:], [math.inf, -math.inf])
        self.assertEqual(value["unicode"], "☃éA")
        self.assertEqual(value["optional"], 1)
        self.assertIsNone(value["nothing"])
        self.assertEqual(value["bools"], [True, False])
        self.assertEqual(value["map"], {1: "one", "two": 2})
        self.assertEqual(value["empty"], [])
        self.assertEqual(value["empty_map"], {})

    def test_nan(self):
        self.assertTrue(math.isnan(_ron.loads("NaN")))
        self.assertEqual(_ron.dumps(math.nan), "NaN")
        self.assertEqual(_ron.dumps(-math.inf), "-inf")

    def test_errors(self):
        for text, message in (
            ("(a: 1) ()", "trailing characters at line 1 column 8"),
            ('"abc', "unterminated string at line 1 column 1"),
            ("(a: 1, a: 2)", "duplicate field 'a' at line 1 column 8"),
            ("[1,\n 2\n 3]", "expected ',' or ']' at line 3 column 2"),
            ("", "unexpected end of input at line 1 column 1"),
            ("12abc", "invalid number at line 1 column 1"),
            ("/* open", "unterminated block comment at line 1 column 1"),
            ("{[1]: 2}", "map keys must be hashable at line 1 column 2"),
        ):
            with self.subTest(text):
                with self.assertRaises(_ron.RonError) as cm:
                    _ron.loads(text)
                self.assertEqual(str(cm.exception), message)

    def test_encode(self):
        value = Record(
            name="a\"b\\c\x01",
            items=[Symbol("Open"), Some(None), 1.5],
            table={"k": Record()},
            empty=[],
        )
        self.assertEqual(
            _ron.dumps(value),
            "(\n"
            '    name: "a\\"b\\\\c\\u{1}",\n'
            "    items: [\n"
            "        Open,\n"
            "        Some(None),\n"
            "        1.5,\n"
            "    ],\n"
            "    table: {\n"
            '        "k": (),\n'
            "    },\n"
            "    empty: [],\n"
            ")",
        )

    def test_keyword_identifiers(self):
        value = Record({"true": Symbol("None"), "ok": 1})
        s = _ron.dumps(value)
        self.assertEqual(s, "(\n    r#true: r#None,\n    ok: 1,\n)")
        self.assertEqual(_ron.loads(s), {"true": "None", "ok": 1})

    def test_unencodable(self):
        with self.assertRaises(_ron.RonError):
            _ron.dumps({1, 2})


class Example(TestCase):
    def setUp(self):
        path = os.path.join(os.path.dirname(__file__), "examples", "appconfig.py")
        self.module = runpy.run_path(path, run_name="appconfig")
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = pathlib.Path(tmp.name)

    def test_load(self):
        path = self.dir / "app.toml"
        path.write_text('enable_foo = true\nbar_type = "Clopen"\n', encoding="utf-8")
        out = io.StringIO()
        with redirect_stdout(out):
            cfg = self.module["main"]([str(path)])
        self.assertTrue(cfg.enable_foo)
        self.assertIs(cfg.bar_type, self.module["BarType"].Clopen)
        self.assertIsNone(cfg.flavor)
        self.assertTrue(out.getvalue().startswith("You specified the following configuration:\n"))

    def test_no_argument(self):
        with self.assertRaises(SystemExit):
            self.module["main"]([])

    def test_bad_file(self):
        with self.assertRaises(SystemExit) as cm:
            self.module["main"]([str(self.dir / "app.cfg")])
        self.assertIn("unknown file extension", str(cm.exception.code))
