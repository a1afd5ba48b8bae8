# Copyright 2026 The Bazel Authors. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Install an APK package body onto a Filesystem.

An APK package body is a gzip-compressed tar stream. Installing it walks
the entries once, in order:

  1. DataSectionGate drops the leading hidden top-level entries (.PKGINFO,
     .SIGN.*, ...). APK v1.0 compatibility says the first non-hidden entry
     starts the data section.
  2. EntryResolver decides what each remaining entry needs (mkdir, write,
     symlink, hard link) and applies it to the filesystem.
  3. Each installed entry is recorded in the manifest, regular files with
     their apk checksum ("Q1" + base64 SHA-1).

The first error of any kind aborts the install and no manifest is returned.

Usage:
    with open("foo-1.0-r0.apk", "rb") as f:
        manifest = ApkInstaller(DirFilesystem("/tmp/root")).install(f)
"""

import contextlib
import enum
import gzip
import logging
import posixpath
import stat
import tarfile
import zlib

from apk_tools.lib.checksum_writer import DEFAULT_CHUNK_SIZE, ChecksumWriter
from apk_tools.lib.entry import EntryKind, InstalledEntry
from apk_tools.lib.errors import (
    InstallError,
    InstallIOError,
    StreamFormatError,
    UnsupportedEntryError,
)

logger = logging.getLogger(__name__)

# Errors the gzip and tar layers raise for a corrupt stream.
_STREAM_ERRORS = (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError)


# ============================================================================
# Archive walking
# ============================================================================


class ArchiveMemberInfo(tarfile.TarInfo):
    """TarInfo that keeps the member name exactly as the archive spells it.

    tarfile strips the trailing "/" from directory names. raw_name keeps
    it, since "./" and ".foo/" are top-level names containing a separator.

    A header that fails to parse is an error here. Plain tarfile takes any
    bad header after the first one as the end of the archive.
    """

    raw_name = None

    @classmethod
    def frombuf(cls, buf, encoding, errors):
        try:
            obj = super().frombuf(buf, encoding, errors)
        except (tarfile.InvalidHeaderError, tarfile.TruncatedHeaderError) as e:
            raise tarfile.ReadError(f"bad header: {e}") from None
        name = tarfile.nts(buf[0:100], encoding, errors)
        prefix = tarfile.nts(buf[345:500], encoding, errors)
        if prefix and obj.type not in tarfile.GNU_TYPES:
            name = prefix + "/" + name
        obj.raw_name = name
        return obj

    def _apply_pax_info(self, pax_headers, encoding, errors):
        super()._apply_pax_info(pax_headers, encoding, errors)
        if "path" in pax_headers:
            self.raw_name = pax_headers["path"]

    def _proc_gnulong(self, tar):
        member = super()._proc_gnulong(tar)
        if self.type == tarfile.GNUTYPE_LONGNAME:
            # GNU tar always writes directory long names with a trailing "/".
            member.raw_name = member.name + "/" if member.isdir() else member.name
        return member


def iter_entries(stream):
    """Yield (TarInfo, reader) for each entry of a gzip-compressed tar stream.

    The TarInfo objects are ArchiveMemberInfo. reader is bounded to the
    entry's declared size, or None for entries without content. The
    sequence can only be consumed once, in order, and a reader is only
    valid until the next entry is requested.

    The archive ends at an all-zero block or at a clean end of data on a
    header boundary.

    Raises:
        StreamFormatError: the gzip or tar layer is corrupt.
    """
    try:
        gz = gzip.GzipFile(fileobj=stream, mode="r")
        tar = tarfile.TarFile(fileobj=gz, mode="r", tarinfo=ArchiveMemberInfo)
    except _STREAM_ERRORS as e:
        raise StreamFormatError(f"unable to read archive: {e}") from e

    with gz, tar:
        while True:
            try:
                info = tar.next()
            except _STREAM_ERRORS as e:
                raise StreamFormatError(f"unable to read archive: {e}") from e
            if info is None:
                return
            reader = tar.extractfile(info) if info.isreg() else None
            yield info, reader


# ============================================================================
# Data-Section Gate
# ============================================================================


class DataSectionGate:
    """One-way latch marking the start of the data section.

    Until it is latched, hidden top-level names (no "/", leading ".") are
    rejected. The first name that is not both latches it, and from then on
    every name is admitted.
    """

    def __init__(self):
        self.started = False

    def admit(self, name: str) -> bool:
        if not self.started and name.startswith(".") and "/" not in name:
            return False
        self.started = True
        return True


# ============================================================================
# Entry Policy Resolver
# ============================================================================


class Action(enum.Enum):
    SATISFIED = "satisfied"  # directory already provided by a symlink
    MKDIR = "mkdir"
    WRITE = "write"
    SYMLINK = "symlink"
    HARDLINK = "hardlink"


_KINDS = {
    Action.SATISFIED: EntryKind.DIRECTORY,
    Action.MKDIR: EntryKind.DIRECTORY,
    Action.WRITE: EntryKind.REGULAR,
    Action.SYMLINK: EntryKind.SYMLINK,
    Action.HARDLINK: EntryKind.HARDLINK,
}


class EntryResolver:
    """Decide and carry out what one archive entry needs on the filesystem."""

    def __init__(self, fs, chunk_size=DEFAULT_CHUNK_SIZE):
        self.fs = fs
        self.writer = ChecksumWriter(fs, chunk_size=chunk_size)

    def _is_dir_symlink(self, path):
        """Return True if path is a symlink that resolves to a directory."""
        try:
            if not stat.S_ISLNK(self.fs.stat(path).st_mode):
                return False
            target = self.fs.readlink(path)
            if not target.startswith("/"):
                target = posixpath.join(posixpath.dirname(path), target)
            return stat.S_ISDIR(self.fs.stat(target).st_mode)
        except OSError:
            # Any failure, I/O errors included, means "not satisfied" and the
            # directory is created instead. apk ignores these errors the same way.
            return False

    def resolve(self, info: tarfile.TarInfo) -> Action:
        """Return the action needed to install info.

        Raises:
            UnsupportedEntryError: info is not a directory, regular file,
                symlink or hard link.
        """
        if info.isdir():
            if self._is_dir_symlink(info.name):
                return Action.SATISFIED
            return Action.MKDIR
        if info.isreg():
            return Action.WRITE
        if info.issym():
            return Action.SYMLINK
        if info.islnk():
            return Action.HARDLINK
        raise UnsupportedEntryError(info.type, info.name)

    def apply(self, action: Action, info: tarfile.TarInfo, reader=None) -> InstalledEntry:
        """Carry out action for info and return its manifest entry."""
        checksum = None
        try:
            if action == Action.MKDIR:
                self.fs.mkdir_all(info.name, info.mode & 0o777)
            elif action == Action.WRITE:
                checksum = self.writer.write(info.name, info.mode, info.size, reader)
            elif action == Action.SYMLINK:
                # Strict: there is no copy fallback when symlinks are unsupported.
                self.fs.symlink(info.linkname, info.name)
            elif action == Action.HARDLINK:
                self.fs.link(info.linkname, info.name)
        except InstallError:
            raise
        except OSError as e:
            raise InstallIOError(f"{action.value} failed: {e}", info.name, e.errno) from e
        return InstalledEntry.from_tarinfo(info, _KINDS[action], checksum)


# ============================================================================
# Archive Walker
# ============================================================================


class ApkInstaller:
    """Install package bodies onto a Filesystem."""

    def __init__(self, fs, chunk_size=DEFAULT_CHUNK_SIZE):
        """Initialize installer.

        Args:
            fs: Filesystem the package is installed into.
            chunk_size: Maximum bytes copied at once when writing files.
        """
        self.fs = fs
        self.chunk_size = chunk_size

    def install(self, stream) -> list:
        """Install every entry of stream and return the manifest.

        Args:
            stream: Readable binary stream holding a gzip-compressed tar.

        Returns:
            list[InstalledEntry]: the installed entries, in archive order.

        Raises:
            InstallError: on the first failure. Anything created before it
                stays on the filesystem.
        """
        gate = DataSectionGate()
        resolver = EntryResolver(self.fs, chunk_size=self.chunk_size)
        manifest = []
        try:
            with contextlib.closing(iter_entries(stream)) as entries:
                for info, reader in entries:
                    if not gate.admit(info.raw_name):
                        logger.debug("skipping %s: before data section", info.name)
                        continue
                    action = resolver.resolve(info)
                    logger.debug("%s %s", action.value, info.name)
                    manifest.append(resolver.apply(action, info, reader))
        except InstallError as e:
            logger.error("install failed after %d entries: %s", len(manifest), e)
            raise
        logger.info("installed %d entries", len(manifest))
        return manifest


def install_apk_files(fs, stream, chunk_size=DEFAULT_CHUNK_SIZE) -> list:
    """Install the package body in stream onto fs. See ApkInstaller.install."""
    return ApkInstaller(fs, chunk_size=chunk_size).install(stream)
