"""Version reconciliation.

Merges the readings of all version sources into the one current version,
returning an explicit result instead of raising so that override modes
can downgrade a mismatch to a warning as an ordinary branch.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from .errors import VersionMismatchError
from .models import VersionInfo, VersioningSystem
from .shell import log, warn
from .sources import SourceReading
from .versions import first_release

_SEPARATORS = re.compile(r"[.\-_]")


@dataclass
class Ok:
    value: VersionInfo


@dataclass
class Warned:
    """Reconciled, but one or more sources disagreed and were ignored."""

    value: VersionInfo
    messages: list[str] = field(default_factory=list)


@dataclass
class Fatal:
    error: VersionMismatchError

    @property
    def message(self) -> str:
        return str(self.error)


ReconcileResult = Ok | Warned | Fatal


def normalize_incremental(version: str) -> str:
    """Strip separators so that "1.2.3" and "123" compare equal."""
    return _SEPARATORS.sub("", version)


def reconcile(
    readings: Iterable[SourceReading],
    *,
    republish: bool = False,
    ignore_mismatch: bool = False,
    force_next: str | None = None,
    system_hint: VersioningSystem | None = None,
) -> ReconcileResult:
    """Merge source readings, in priority order, into the current version.

    Args:
        readings: Source readings in priority order.
        republish: Downgrade mismatches to warnings.
        ignore_mismatch: Do not compare versions at all (revert task).
        force_next: Version to fall back on when no source has a version.
        system_hint: Versioning system known before any source is read
                     (configured, or taken from the changelog).

    Returns:
        Ok with the merged VersionInfo, Warned when mismatches were
        downgraded, or Fatal carrying the first authoritative mismatch.
    """
    acc = VersionInfo(
        system=system_hint if system_hint != VersioningSystem.AUTO else None
    )
    recorded_source: str | None = None
    messages: list[str] = []

    for reading in readings:
        info = reading.info
        if not info.version:
            continue
        if acc.system in (None, VersioningSystem.AUTO):
            acc.system = info.system
        # The recorded version is kept separator-free once the system is incremental.
        incremental = acc.system == VersioningSystem.INCREMENTAL
        parsed = normalize_incremental(info.version) if incremental else info.version

        if acc.version is None:
            acc.version = parsed
            acc.info = info.info
        else:
            if incremental:
                acc.version = normalize_incremental(acc.version)
            if parsed != acc.version and not ignore_mismatch:
                mismatch = VersionMismatchError(reading.source, parsed, acc.version, recorded_source)
                if reading.fatal_on_mismatch and not republish:
                    return Fatal(mismatch)
                warn(str(mismatch))
                if republish and reading.fatal_on_mismatch:
                    warn("   Continuing in republish mode")
                messages.append(str(mismatch))
            if acc.info is None:
                acc.info = info.info
        recorded_source = reading.source

    if acc.version is None:
        warn("The current version cannot be determined from the local files")
        if force_next:
            warn(f"   Setting to version specified by version-force-next {force_next}")
            acc.version = force_next
        else:
            acc.version = first_release(acc.system)
            warn(f"   Setting to initial version {acc.version}")
    else:
        log("Retrieved local file version info")
        log(f"   Version   : {acc.version}")
        log(f"   System    : {acc.system.value if acc.system else 'auto'}")

    if messages:
        return Warned(acc, messages)
    return Ok(acc)


def unwrap(result: ReconcileResult) -> VersionInfo:
    """Return the reconciled value, raising the mismatch of a Fatal result."""
    if isinstance(result, Fatal):
        raise result.error
    return result.value
