import datetime
import functools

import yaml

from ._mapping import Options, mapping_for


_map = functools.partial(
    mapping_for,
    context="",
    options=Options(native=(datetime.date, datetime.datetime)),
)

_settings = dict(
    allow_unicode=True,
    sort_keys=False,
)

DecodeError = yaml.YAMLError
EncodeError = yaml.YAMLError


def dumps(obj, T):
    return yaml.safe_dump(_map(T).lower(obj, ""), **_settings)


def load(f, T):
    return _map(T).unlower(yaml.safe_load(f), "")


def loads(s, T):
    return _map(T).unlower(yaml.safe_load(s), "")
