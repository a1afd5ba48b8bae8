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
"""APK package body writer.

Writes gzip-compressed tar streams shaped like the data part of an APK.
Entries are written in the order they are added, which matters: the
installer treats leading hidden entries (.PKGINFO) specially.

Usage:
    with open("output.apk", "wb") as f:
        writer = ApkWriter(f)
        writer.add_file(".PKGINFO", b"pkgname = foo\n")
        writer.add_directory("etc", mode=0o755)
        writer.add_file("etc/foo.conf", content, mode=0o644)
        writer.add_symlink("etc/foo.link", target="foo.conf")
        writer.finish()
"""

import gzip
import io
import tarfile

PORTABLE_MTIME = 946684800  # 2000-01-01 00:00:00.000 UTC


class ApkWriter:
    """Write gzip-compressed tar package bodies."""

    def __init__(self, stream, mtime=PORTABLE_MTIME):
        """Initialize writer with output stream.

        Args:
            stream: Binary file-like object to write to.
            mtime: Modification time stamped on every entry.
        """
        self.stream = stream
        self.mtime = mtime
        self._gz = gzip.GzipFile(fileobj=stream, mode="wb", mtime=mtime)
        self._tar = tarfile.TarFile(fileobj=self._gz, mode="w",
                                    format=tarfile.PAX_FORMAT)

    def _info(self, path, entry_type, mode, uid, gid):
        info = tarfile.TarInfo(name=path)
        info.type = entry_type
        info.mode = mode & 0o7777
        info.uid = uid
        info.gid = gid
        info.mtime = self.mtime
        return info

    def add_file(self, path, content, mode=0o644, uid=0, gid=0,
                 pax_headers=None):
        """Add a regular file to the archive.

        Args:
            path: Path within the archive.
            content: File content as bytes or str.
            mode: Permission bits (default 0o644).
            uid: Owner user ID.
            gid: Owner group ID.
            pax_headers: Extra PAX records for the entry.
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        info = self._info(path, tarfile.REGTYPE, mode, uid, gid)
        info.size = len(content)
        if pax_headers:
            info.pax_headers = dict(pax_headers)
        self._tar.addfile(info, io.BytesIO(content))

    def add_directory(self, path, mode=0o755, uid=0, gid=0):
        """Add a directory to the archive."""
        self._tar.addfile(self._info(path, tarfile.DIRTYPE, mode, uid, gid))

    def add_symlink(self, path, target, mode=0o777, uid=0, gid=0):
        """Add a symbolic link pointing at target."""
        info = self._info(path, tarfile.SYMTYPE, mode, uid, gid)
        info.linkname = target
        self._tar.addfile(info)

    def add_hardlink(self, path, target, mode=0o644, uid=0, gid=0):
        """Add a hard link to the earlier entry target."""
        info = self._info(path, tarfile.LNKTYPE, mode, uid, gid)
        info.linkname = target
        self._tar.addfile(info)

    def add_device(self, path, major=1, minor=3, char=True, mode=0o666):
        """Add a character or block device node.

        Package bodies never legitimately hold these; this exists so the
        installer's rejection of them can be exercised.
        """
        entry_type = tarfile.CHRTYPE if char else tarfile.BLKTYPE
        info = self._info(path, entry_type, mode, 0, 0)
        info.devmajor = major
        info.devminor = minor
        self._tar.addfile(info)

    def add_fifo(self, path, mode=0o644):
        """Add a named pipe."""
        self._tar.addfile(self._info(path, tarfile.FIFOTYPE, mode, 0, 0))

    def finish(self):
        """Write the end-of-archive blocks and the gzip trailer."""
        self._tar.close()
        self._gz.close()


def build_apk(entries) -> bytes:
    """Build a package body in memory.

    Args:
        entries: Iterable of (path, content) pairs. A path ending in "/" is
            a directory; content may also be ("symlink", target) or
            ("hardlink", target).

    Returns:
        bytes: The gzip-compressed tar stream.
    """
    buf = io.BytesIO()
    writer = ApkWriter(buf)
    for path, content in entries:
        if path.endswith("/"):
            writer.add_directory(path)
        elif isinstance(content, tuple):
            kind, target = content
            if kind == "symlink":
                writer.add_symlink(path, target)
            elif kind == "hardlink":
                writer.add_hardlink(path, target)
            else:
                raise ValueError(f"Unknown entry kind {kind!r} for {path}")
        else:
            writer.add_file(path, content)
    writer.finish()
    return buf.getvalue()
