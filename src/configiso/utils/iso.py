"""ISO9660 image construction.

Images are laid out with pycdlib at interchange level 3 with Rock Ridge
enabled, so the base ISO9660 names are mangled d-character names while the
Rock Ridge entries carry the original file names and POSIX modes.
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, Set, Union

import pycdlib
from pycdlib.pycdlibexception import PyCdlibException

from configiso.errors import AllocationFailed, FinalizeFailed, FormatFailed


logger = logging.getLogger(__name__)

# Smallest container that holds the system area and volume descriptors.
# Once written, the file is cut to the volume space size the image declares.
MIN_ISO_SIZE = 38 * 1024
ROCK_RIDGE_VERSION = "1.09"
INTERCHANGE_LEVEL = 3
MAX_NAME_LENGTH = 30
MAX_EXTENSION_LENGTH = 8

_INVALID_CHARS = re.compile(r"[^A-Z0-9_]")

PathLike = Union[str, "os.PathLike[str]"]


def _sanitize(part: str) -> str:
    return _INVALID_CHARS.sub("_", part.upper())


def iso9660_name(name: str, is_dir: bool, taken: Set[str]) -> str:
    """Derive a unique ISO9660 name for ``name`` within one directory.

    ``taken`` holds names already used in the directory and is updated.
    Files get the mandatory ``;1`` version suffix, directories do not.
    """
    if is_dir:
        stem, ext = name, ""
    else:
        stem, dot, ext = name.rpartition(".")
        if not dot or not stem:
            stem, ext = name.lstrip("."), ""

    ext = _sanitize(ext)[:MAX_EXTENSION_LENGTH]
    room = MAX_NAME_LENGTH - len(ext) - (1 if ext else 0)
    stem = _sanitize(stem)[:room] or "_"

    candidate = stem
    counter = 1
    while _join(candidate, ext, is_dir) in taken:
        suffix = f"_{counter}"
        candidate = stem[: room - len(suffix)] + suffix
        counter += 1

    base = _join(candidate, ext, is_dir)
    taken.add(base)
    return base if is_dir else f"{base};1"


def _join(stem: str, ext: str, is_dir: bool) -> str:
    if is_dir:
        return stem
    return f"{stem}.{ext}"


def _add_tree(iso: pycdlib.PyCdlib, work_dir: Path) -> int:
    """Add every directory and file under work_dir. Returns the file count."""
    iso_dirs: Dict[str, str] = {".": ""}
    taken: Dict[str, Set[str]] = {".": set()}
    count = 0

    for root, dirs, files in os.walk(work_dir):
        dirs.sort()
        files.sort()
        rel_root = os.path.relpath(root, work_dir)
        parent_iso = iso_dirs[rel_root]
        used = taken[rel_root]

        for name in dirs:
            local = Path(root) / name
            iso_path = f"{parent_iso}/{iso9660_name(name, True, used)}"
            iso.add_directory(
                iso_path=iso_path,
                rr_name=name,
                file_mode=local.stat().st_mode,
            )
            rel = os.path.normpath(os.path.join(rel_root, name))
            iso_dirs[rel] = iso_path
            taken[rel] = set()

        for name in files:
            local = Path(root) / name
            iso_path = f"{parent_iso}/{iso9660_name(name, False, used)}"
            iso.add_file(
                str(local),
                iso_path=iso_path,
                rr_name=name,
                file_mode=local.stat().st_mode,
            )
            count += 1

    return count


def create(output_path: PathLike, work_dir: PathLike, volume_label: str) -> None:
    """Build a finalized ISO9660 image of work_dir at output_path.

    The image is written next to output_path and renamed over it once it is
    complete and closed, so an existing image is replaced rather than
    appended to and readers never observe a partial file.
    """
    output_path = Path(output_path)
    work_dir = Path(work_dir)
    partial = output_path.with_name(output_path.name + ".partial")

    if not work_dir.is_dir():
        raise FormatFailed(output_path, f"work directory {work_dir} does not exist")

    try:
        fp = open(partial, "w+b")
    except OSError as e:
        raise AllocationFailed(output_path, f"failed to create image container: {e}") from e

    iso = pycdlib.PyCdlib()
    initialized = False
    try:
        with fp:
            try:
                fp.truncate(MIN_ISO_SIZE)
            except OSError as e:
                raise AllocationFailed(output_path, f"failed to allocate image container: {e}") from e

            try:
                iso.new(
                    interchange_level=INTERCHANGE_LEVEL,
                    vol_ident=volume_label,
                    rock_ridge=ROCK_RIDGE_VERSION,
                )
                initialized = True
                count = _add_tree(iso, work_dir)
            except (PyCdlibException, OSError) as e:
                raise FormatFailed(output_path, f"failed to create iso9660 filesystem: {e}") from e

            try:
                iso.write_fp(fp)
                fp.truncate(iso.pvd.space_size * iso.pvd.log_block_size)
                fp.flush()
                os.fsync(fp.fileno())
            except (PyCdlibException, OSError) as e:
                raise FinalizeFailed(output_path, f"failed to finalize iso: {e}") from e

        try:
            os.replace(partial, output_path)
        except OSError as e:
            raise FinalizeFailed(output_path, f"failed to move image into place: {e}") from e
    except Exception:
        partial.unlink(missing_ok=True)
        raise
    finally:
        if initialized:
            iso.close()

    logger.debug(f"Wrote {count} files to {output_path} (label {volume_label})")


def read_volume_label(path: PathLike) -> str:
    """Return the primary volume identifier of an existing image."""
    iso = pycdlib.PyCdlib()
    iso.open(str(path))
    try:
        return iso.pvd.volume_identifier.decode("ascii", errors="replace").rstrip()
    finally:
        iso.close()
