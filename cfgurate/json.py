import functools
import json

from ._mapping import mapping_for


_map = functools.partial(mapping_for, context="")

_settings = dict(
    indent=2,
    ensure_ascii=False,
    allow_nan=False,
)

DecodeError = json.JSONDecodeError
EncodeError = (TypeError, ValueError)


def dumps(obj, T):
    return json.dumps(_map(T).lower(obj, ""), **_settings)


def load(f, T):
    return _map(T).unlower(json.load(f), "")


def loads(s, T):
    return _map(T).unlower(json.loads(s), "")
