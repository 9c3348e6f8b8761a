"""datamirror -- a simple way to efficiently retrieve data from the web.

Many programs need to retrieve, store and then parse remote resources:
build a local filename, check whether it exists and is fresh enough,
download a new copy if not, and parse it. ``datamirror`` does all of that
so the program can focus on using the data::

    import datamirror

    path = datamirror.mirror_file("https://example.test/data.csv")
    rows = datamirror.mirror_csv("https://example.test/data.csv")
    data = datamirror.mirror_json("https://example.test/data.json", ttl=30)

Local copies live in the platform temp directory, named from a SHA-256 hash
of the URL salted with the current user's login, so different programs run
by the same user share a cache while other users do not. Files are created
with mode ``0600``.

Modules:
    mirror: The :class:`Mirror` cache service and module-level helpers.
    cache: Key derivation, freshness checks and atomic entry writes.
    decoders: Text, JSON, YAML, XML and CSV decoders.
    models: Pydantic configuration models.
    config: XDG-aware configuration persistence.
    exceptions: Exception hierarchy with exit-code mapping.
    app: The ``datamirror`` command-line interface.
"""

__version__ = "0.7.0"

from datamirror.decoders import DataFormat  # noqa: E402
from datamirror.exceptions import (  # noqa: E402
    CachePermissionError,
    DecodeError,
    IdentityResolutionError,
    InvalidUsageError,
    MirrorError,
    TransportError,
)
from datamirror.mirror import (  # noqa: E402
    Mirror,
    filename,
    get_mirror,
    mirror_csv,
    mirror_fh,
    mirror_file,
    mirror_json,
    mirror_str,
    mirror_xml,
    mirror_yaml,
    mirrored,
    reset_mirror,
    set_mirror,
    stale,
)
from datamirror.models import GlobalConfig, MirrorConfig, RequestConfig  # noqa: E402
from datamirror.result import MirrorResult  # noqa: E402

__all__ = [
    "CachePermissionError",
    "DataFormat",
    "DecodeError",
    "GlobalConfig",
    "IdentityResolutionError",
    "InvalidUsageError",
    "Mirror",
    "MirrorConfig",
    "MirrorError",
    "MirrorResult",
    "RequestConfig",
    "TransportError",
    "filename",
    "get_mirror",
    "mirror_csv",
    "mirror_fh",
    "mirror_file",
    "mirror_json",
    "mirror_str",
    "mirror_xml",
    "mirror_yaml",
    "mirrored",
    "reset_mirror",
    "set_mirror",
    "stale",
]
