import functools
import tomllib

import tomli_w

from ._mapping import DATETYPES, Options, mapping_for


_map = functools.partial(mapping_for, context="", options=Options(native=DATETYPES))

DecodeError = tomllib.TOMLDecodeError
EncodeError = (TypeError, ValueError)


def _prune(obj):
    # TOML has no null; absent keys stand in for None
    if isinstance(obj, dict):
        return {k: _prune(v) for k, v in obj.items() if v is not None}
    if isinstance(obj, list):
        return [_prune(item) for item in obj]
    return obj


def dumps(obj, T):
    data = _prune(_map(T).lower(obj, ""))
    if not isinstance(data, dict):
        raise TypeError(f"TOML documents must be tables, got {type(data).__name__}")
    return tomli_w.dumps(data, multiline_strings=True)


def load(f, T):
    return loads(f.read(), T)


def loads(s, T):
    return _map(T).unlower(tomllib.loads(s), "")
