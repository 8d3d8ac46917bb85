"""netpresence -- who's in my network, from cached nmap scan logs."""

from importlib import metadata
from pathlib import Path

# Present in a source checkout, absent once installed from a wheel
_VERSION_FILE = Path(__file__).resolve().parents[2] / "VERSION"


def _read_version() -> str:
    """Version from the checkout's VERSION file, else the installed distribution."""
    if _VERSION_FILE.is_file():
        return _VERSION_FILE.read_text().strip()
    try:
        return metadata.version("netpresence")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__version__ = _read_version()
