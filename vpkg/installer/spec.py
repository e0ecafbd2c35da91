"""Package spec parsing (``namespace/name[@version]``)."""

from __future__ import annotations


def parse_package_spec(spec: str) -> tuple[str, str]:
    """Split a package spec into ``(name, version)``.

    The split happens at the last ``@``, so anything before it (including
    further ``@`` characters) is the name.  A spec without ``@`` has an empty
    version, which the caller resolves.

    Examples::

        parse_package_spec("vandor/redis-cache")        -> ("vandor/redis-cache", "")
        parse_package_spec("vandor/redis-cache@1.2.3")  -> ("vandor/redis-cache", "1.2.3")
        parse_package_spec("ns/pkg@v1@v2")              -> ("ns/pkg@v1", "v2")
    """
    name, sep, version = spec.strip().rpartition("@")
    if not sep:
        return spec.strip(), ""
    return name.strip(), version.strip()
