"""Load a configuration file given on the command line and show it.

Run with ``python examples/appconfig.py <cfgfile>``; the file's format is
identified by its extension.
"""

import dataclasses
import enum
import pprint
import sys
import typing

import cfgurate


class BarType(enum.Enum):
    Open = 1
    Closed = 2
    Clopen = 3


@dataclasses.dataclass
class AppConfig:
    enable_foo: bool = False
    bar_type: BarType = BarType.Open
    flavor: typing.Optional[str] = None


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if not args:
        sys.exit("No configuration file specified")
    try:
        cfg = cfgurate.load(args[0], AppConfig)
    except cfgurate.LoadError as e:
        sys.exit(str(e))
    print("You specified the following configuration:")
    pprint.pprint(cfg)
    return cfg


if __name__ == "__main__":
    main()
