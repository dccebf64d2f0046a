"""Read assembly identity from managed binaries.

Probing happens in a fresh child interpreter per file so that a foreign or
corrupt binary cannot disturb the calling process. The child is this module
run as ``python -m clide.dotnet.assembly PATH``; it prints the identity as
JSON and exits non-zero when the file is not a readable assembly.
"""

from __future__ import annotations

import hashlib
import json
import logging
import subprocess
import sys
from dataclasses import asdict

from clide.config import DEFAULT_PROBE_TIMEOUT, AssemblyIdentity

logger = logging.getLogger(__name__)


def identity_of(path: str, timeout: float = DEFAULT_PROBE_TIMEOUT) -> AssemblyIdentity | None:
    """Return the identity of the assembly at ``path``, or None if unreadable."""
    logger.debug(f"Probing assembly identity of {path}")
    try:
        result = subprocess.run(
            [sys.executable, "-m", "clide.dotnet.assembly", path],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"Timed out after {timeout}s reading assembly {path}")
        return None
    except OSError as e:
        logger.warning(f"Could not start assembly probe for {path}: {e}")
        return None

    if result.returncode != 0:
        logger.debug(f"Assembly probe rejected {path}: {result.stderr.strip()}")
        return None

    try:
        data = json.loads(result.stdout)
        return AssemblyIdentity(name=data["name"], full_name=data["full_name"])
    except (ValueError, KeyError, TypeError):
        logger.warning(f"Unexpected assembly probe output for {path}: {result.stdout!r}")
        return None


def public_key_token(public_key: bytes) -> str:
    """Public key token: the last 8 bytes of the key's SHA-1, reversed."""
    if not public_key:
        return "null"
    digest = hashlib.sha1(public_key).digest()
    return digest[-8:][::-1].hex()


def format_full_name(name: str, version: str, culture: str, token: str) -> str:
    return f"{name}, Version={version}, Culture={culture or 'neutral'}, PublicKeyToken={token}"


def _heap_value(item):
    # dnfile wraps heap entries in objects carrying .value
    return getattr(item, "value", item)


def read_identity(path: str) -> AssemblyIdentity | None:
    """Read the Assembly metadata table in-process. Used by the child only."""
    import dnfile

    pe = dnfile.dnPE(path)
    try:
        net = pe.net
        if net is None or net.mdtables is None:
            return None
        table = net.mdtables.Assembly
        if table is None or not table.rows:
            return None
        row = table.rows[0]

        name = str(_heap_value(row.Name) or "")
        culture = str(_heap_value(row.Culture) or "")
        public_key = _heap_value(row.PublicKey) or b""
        version = f"{row.MajorVersion}.{row.MinorVersion}.{row.BuildNumber}.{row.RevisionNumber}"
    finally:
        pe.close()

    if not name:
        return None
    token = public_key_token(bytes(public_key))
    return AssemblyIdentity(name=name, full_name=format_full_name(name, version, culture, token))


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("usage: python -m clide.dotnet.assembly PATH", file=sys.stderr)
        return 2
    try:
        identity = read_identity(args[0])
    except Exception as e:
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1
    if identity is None:
        print("not a managed assembly", file=sys.stderr)
        return 1
    json.dump(asdict(identity), sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
