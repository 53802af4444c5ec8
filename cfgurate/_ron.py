import math
import re

from ._mapping import Record, Some, Symbol


class RonError(ValueError):
    def __init__(self, message, text=None, pos=None):
        self.message = message
        self.line = self.column = None
        if text is not None:
            self.line = text.count("\n", 0, pos) + 1
            self.column = pos - text.rfind("\n", 0, pos)
            message = f"{message} at line {self.line} column {self.column}"
        super().__init__(message)


WHITESPACE = re.compile(r"\s*")
IDENT = re.compile(r"r#[A-Za-z0-9_.+-]+|[A-Za-z_][A-Za-z0-9_]*")
RADIX = re.compile(r"([+-]?)0([xob])([0-9A-Za-z_]+)")
DECIMAL = re.compile(
    r"[+-]?(?:[0-9][0-9_]*(?:\.(?:[0-9][0-9_]*)?)?|\.[0-9][0-9_]*)"
    r"(?:[eE][+-]?[0-9][0-9_]*)?"
)
STRINGCHUNK = re.compile(r'([^"\\]*)(["\\])', re.DOTALL)
BARE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")
KEYWORDS = {"true", "false", "None", "Some", "inf", "NaN"}
BASES = {"x": 16, "o": 8, "b": 2}
ESCAPES = {
    '"': '"',
    "'": "'",
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "0": "\0",
}
INDENT = "    "


def loads(text):
    return Parser(text).document()


def dumps(value):
    return encode(value, 0)


class Parser:
    def __init__(self, text):
        self.text = text
        self.pos = 0

    def error(self, message, pos=None):
        return RonError(message, self.text, self.pos if pos is None else pos)

    def peek(self, n=1):
        return self.text[self.pos : self.pos + n]

    def expect(self, s):
        self.skip()
        if not self.text.startswith(s, self.pos):
            raise self.error(f"expected {s!r}")
        self.pos += len(s)

    def skip(self):
        while True:
            self.pos = WHITESPACE.match(self.text, self.pos).end()
            if self.text.startswith("//", self.pos):
                end = self.text.find("\n", self.pos)
                self.pos = len(self.text) if end < 0 else end + 1
            elif self.text.startswith("/*", self.pos):
                self.block_comment()
            else:
                return

    def block_comment(self):
        start = self.pos
        depth = 0
        while True:
            if self.text.startswith("/*", self.pos):
                depth += 1
                self.pos += 2
            elif self.text.startswith("*/", self.pos):
                depth -= 1
                self.pos += 2
                if not depth:
                    return
            elif self.pos >= len(self.text):
                raise self.error("unterminated block comment", start)
            else:
                self.pos += 1

    def document(self):
        self.skip()
        while self.text.startswith("#!", self.pos):
            self.attribute()
            self.skip()
        value = self.value()
        self.skip()
        if self.pos != len(self.text):
            raise self.error("trailing characters")
        return value

    def attribute(self):
        # only extension attributes exist; their effect is always on here
        start = self.pos
        self.expect("#![")
        end = self.text.find("]", self.pos)
        if end < 0:
            raise self.error("unterminated attribute", start)
        self.pos = end + 1

    def value(self):
        self.skip()
        c = self.peek()
        if not c:
            raise self.error("unexpected end of input")
        if c == "(":
            return self.parenthesized()
        if c == "[":
            return self.sequence()
        if c == "{":
            return self.mapping()
        if c == '"':
            return self.string()
        if c == "'":
            return self.char()
        if c == "r" and self.raw_string_ahead():
            return self.raw_string()
        if c in "+-.0123456789":
            return self.number()
        m = IDENT.match(self.text, self.pos)
        if not m:
            raise self.error(f"unexpected character {c!r}")
        self.pos = m.end()
        name = m.group()
        if name == "true":
            return True
        if name == "false":
            return False
        if name == "None":
            return None
        if name == "inf":
            return math.inf
        if name == "NaN":
            return math.nan
        if name == "Some":
            self.expect("(")
            value = self.value()
            self.skip()
            if self.peek() == ",":
                self.pos += 1
            self.expect(")")
            return value
        name = name.removeprefix("r#")
        self.skip()
        if self.peek() != "(":
            return name
        value = self.parenthesized()
        if isinstance(value, list) and len(value) == 1:
            return value[0]
        return value

    def parenthesized(self):
        self.expect("(")
        self.skip()
        if self.peek() == ")":
            self.pos += 1
            return {}
        m = IDENT.match(self.text, self.pos)
        if m:
            after = WHITESPACE.match(self.text, m.end()).end()
            if self.text.startswith(":", after) and m.group() not in KEYWORDS:
                return self.fields()
        return self.items(")")

    def fields(self):
        result = {}
        while True:
            self.skip()
            if self.peek() == ")":
                break
            m = IDENT.match(self.text, self.pos)
            if not m:
                raise self.error("expected field name")
            name = m.group().removeprefix("r#")
            if name in result:
                raise self.error(f"duplicate field {name!r}")
            self.pos = m.end()
            self.expect(":")
            result[name] = self.value()
            if not self.separator(")"):
                break
        self.expect(")")
        return result

    def sequence(self):
        self.expect("[")
        return self.items("]")

    def items(self, close):
        result = []
        while True:
            self.skip()
            if self.peek() == close:
                break
            result.append(self.value())
            if not self.separator(close):
                break
        self.expect(close)
        return result

    def mapping(self):
        self.expect("{")
        result = {}
        while True:
            self.skip()
            if self.peek() == "}":
                break
            start = self.pos
            key = self.value()
            try:
                hash(key)
            except TypeError:
                raise self.error("map keys must be hashable", start) from None
            self.expect(":")
            result[key] = self.value()
            if not self.separator("}"):
                break
        self.expect("}")
        return result

    def separator(self, close):
        self.skip()
        c = self.peek()
        if c == ",":
            self.pos += 1
            return True
        if c != close:
            raise self.error(f"expected ',' or {close!r}")
        return False

    def string(self):
        start = self.pos
        self.pos += 1
        chunks = []
        while True:
            m = STRINGCHUNK.match(self.text, self.pos)
            if not m:
                raise self.error("unterminated string", start)
            content, terminator = m.groups()
            chunks.append(content)
            self.pos = m.end()
            if terminator == '"':
                return "".join(chunks)
            chunks.append(self.escape())

    def char(self):
        start = self.pos
        self.pos += 1
        c = self.peek()
        if c == "\\":
            self.pos += 1
            c = self.escape()
        elif not c or c == "'":
            raise self.error("invalid character literal", start)
        else:
            self.pos += 1
        if self.peek() != "'":
            raise self.error("unterminated character literal", start)
        self.pos += 1
        return c

    def escape(self):
        start = self.pos - 1
        c = self.peek()
        self.pos += 1
        if c in ESCAPES:
            return ESCAPES[c]
        if c == "x":
            return chr(self.hexdigits(2, start))
        if c == "u":
            if self.peek() == "{":
                end = self.text.find("}", self.pos)
                if end < 0:
                    raise self.error("unterminated unicode escape", start)
                digits = self.text[self.pos + 1 : end]
                self.pos = end + 1
                try:
                    return chr(int(digits, 16))
                except ValueError:
                    raise self.error("invalid unicode escape", start) from None
            code = self.hexdigits(4, start)
            if 0xD800 <= code < 0xDC00 and self.peek(2) == "\\u":
                self.pos += 2
                low = self.hexdigits(4, start)
                if 0xDC00 <= low < 0xE000:
                    code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                else:
                    raise self.error("invalid surrogate pair", start)
            return chr(code)
        raise self.error(f"invalid escape {c!r}", start)

    def hexdigits(self, n, start):
        digits = self.peek(n)
        if len(digits) != n or not all(d in "0123456789abcdefABCDEF" for d in digits):
            raise self.error("invalid escape", start)
        self.pos += n
        return int(digits, 16)

    def raw_string_ahead(self):
        i = self.pos + 1
        while self.text.startswith("#", i):
            i += 1
        return self.text.startswith('"', i)

    def raw_string(self):
        start = self.pos
        self.pos += 1
        hashes = 0
        while self.peek() == "#":
            hashes += 1
            self.pos += 1
        self.pos += 1
        close = '"' + "#" * hashes
        end = self.text.find(close, self.pos)
        if end < 0:
            raise self.error("unterminated raw string", start)
        value = self.text[self.pos : end]
        self.pos = end + len(close)
        return value

    def number(self):
        start = self.pos
        if self.peek() in ("+", "-"):
            for name, value in (("inf", math.inf), ("NaN", math.nan)):
                if self.text.startswith(name, self.pos + 1):
                    self.pos += 1 + len(name)
                    return -value if self.text[start] == "-" else value
        m = RADIX.match(self.text, self.pos)
        if m:
            sign, base, digits = m.groups()
            self.pos = m.end()
            try:
                value = int(digits.replace("_", ""), BASES[base])
            except ValueError:
                raise self.error("invalid number", start) from None
            return -value if sign == "-" else value
        m = DECIMAL.match(self.text, self.pos)
        if not m or not any(d.isdigit() for d in m.group()):
            raise self.error("invalid number", start)
        self.pos = m.end()
        c = self.peek()
        if c.isalnum() or c == "_":
            raise self.error("invalid number", start)
        s = m.group().replace("_", "")
        if any(d in s for d in ".eE"):
            return float(s)
        return int(s)


def encode(value, level):
    inner = INDENT * (level + 1)
    if value is None:
        return "None"
    if isinstance(value, Some):
        return f"Some({encode(value.value, level)})"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return int.__repr__(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        return float.__repr__(value)
    if isinstance(value, Symbol):
        return identifier(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, Record):
        if not value:
            return "()"
        lines = [f"{inner}{identifier(k)}: {encode(v, level + 1)},\n" for k, v in value.items()]
        return "(\n" + "".join(lines) + INDENT * level + ")"
    if isinstance(value, dict):
        if not value:
            return "{}"
        lines = [
            f"{inner}{encode(k, level + 1)}: {encode(v, level + 1)},\n"
            for k, v in value.items()
        ]
        return "{\n" + "".join(lines) + INDENT * level + "}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        lines = [f"{inner}{encode(v, level + 1)},\n" for v in value]
        return "[\n" + "".join(lines) + INDENT * level + "]"
    raise RonError(f"cannot encode value of type {type(value).__name__}")


def identifier(name):
    if BARE.match(name) and name not in KEYWORDS:
        return str(name)
    if IDENT.fullmatch("r#" + name):
        return "r#" + name
    raise RonError(f"cannot encode {name!r} as an identifier")


def quote(s):
    out = ['"']
    for c in s:
        if c == '"':
            out.append('\\"')
        elif c == "\\":
            out.append("\\\\")
        elif c == "\n":
            out.append("\\n")
        elif c == "\r":
            out.append("\\r")
        elif c == "\t":
            out.append("\\t")
        elif c < " " or c == "\x7f":
            out.append(f"\\u{{{ord(c):x}}}")
        else:
            out.append(c)
    out.append('"')
    return "".join(out)
