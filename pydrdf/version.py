import pathlib
from importlib.metadata import PackageNotFoundError, version

VERSION_FILE = pathlib.Path(__file__).parent / "VERSION"


def _read_version() -> str:
    if VERSION_FILE.exists():
        return VERSION_FILE.read_text().strip()
    try:
        return version("pydrdf")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _read_version()
