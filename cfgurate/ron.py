import functools

from . import _ron
from ._mapping import Options, mapping_for


_map = functools.partial(mapping_for, context="", options=Options(annotate=True))

DecodeError = _ron.RonError
EncodeError = _ron.RonError


def dumps(obj, T):
    return _ron.dumps(_map(T).lower(obj, ""))


def load(f, T):
    return loads(f.read(), T)


def loads(s, T):
    return _map(T).unlower(_ron.loads(s), "")
