"""
Detecting the package's own version from the installed distribution.

The version is used only for self-identification in the ``User-Agent``
header and in ``kubegate --version``. It is determined once at import time.
"""
from typing import Optional

version: Optional[str] = None

try:
    import importlib.metadata
except ImportError:
    pass
else:
    try:
        name, *_ = __name__.split('.')  # usually "kubegate", unless renamed/forked.
        version = importlib.metadata.version(name)
    except importlib.metadata.PackageNotFoundError:
        pass  # running from a source tree without installation.
