import functools

import json5

from ._mapping import mapping_for


_map = functools.partial(mapping_for, context="")

_settings = dict(
    indent=2,
    ensure_ascii=False,
)

DecodeError = ValueError
EncodeError = (TypeError, ValueError)


def dumps(obj, T):
    return json5.dumps(_map(T).lower(obj, ""), **_settings)


def load(f, T):
    return _map(T).unlower(json5.load(f), "")


def loads(s, T):
    return _map(T).unlower(json5.loads(s), "")
