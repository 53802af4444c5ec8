import enum
import os


class CfgurateError(Exception):
    pass


class MappingError(CfgurateError, ValueError):
    def __init__(self, message, context):
        self.message = message
        self.context = context
        super().__init__(f"{message} in {context}" if context else message)


class IdentifyError(CfgurateError, ValueError):
    pass


class NoExtensionError(IdentifyError):
    def __init__(self):
        super().__init__("file does not have a file extension")


class NotUnicodeError(IdentifyError):
    def __init__(self):
        super().__init__("file extension is not valid Unicode")


class UnknownExtensionError(IdentifyError):
    def __init__(self, extension):
        self.extension = extension
        super().__init__(f"unknown file extension: {extension!r}")


class NotEnabledError(IdentifyError):
    def __init__(self, format):
        self.format = format
        super().__init__(f"support for {format} is not enabled")


class Kind(enum.Enum):
    IO = "io"
    SYNTAX = "syntax"


class CodecError(CfgurateError, ValueError):
    def __init__(self, format, message, context="", kind=Kind.SYNTAX):
        self.format = format
        self.message = message
        self.context = context
        self.kind = kind
        super().__init__(f"{context}: {message}" if context else message)


class DeserializeError(CodecError):
    pass


class SerializeError(CodecError):
    pass


class Stage(enum.Enum):
    IDENTIFY = "identify"
    OPEN = "open"
    DESERIALIZE = "deserialize"
    SERIALIZE = "serialize"
    FLUSH = "flush"


class FileError(CfgurateError):
    _messages: dict

    def __init__(self, stage, path, cause):
        self.stage = stage
        self.path = path
        self.cause = cause
        super().__init__(f"{self._messages[stage]} {os.fsdecode(path)!r}: {cause}")


class LoadError(FileError):
    _messages = {
        Stage.IDENTIFY: "failed to identify file format of",
        Stage.OPEN: "failed to open file for reading",
        Stage.DESERIALIZE: "failed to deserialize contents of",
    }


class DumpError(FileError):
    _messages = {
        Stage.IDENTIFY: "failed to identify file format of",
        Stage.OPEN: "failed to open file for writing",
        Stage.SERIALIZE: "failed to serialize structure to",
        Stage.FLUSH: "failed to flush output file",
    }
