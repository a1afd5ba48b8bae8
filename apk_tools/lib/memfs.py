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
"""In-memory Filesystem.

Holds directories, regular files, symlinks and hard links in a dict keyed
by cleaned path. Intermediate symlinks are followed when resolving paths,
the same way a kernel would, so directory/symlink collisions behave like
they do on disk.

Usage:
    fs = MemFilesystem()
    fs.mkdir_all("etc", 0o755)
    with fs.open_file("etc/motd", 0o644) as f:
        f.write(b"hello")
    fs.read_file("etc/motd")  # b"hello"
"""

import errno
import io
import os
import posixpath
import stat

from apk_tools.lib.filesystem import MAX_SYMLINK_HOPS, Filesystem, clean_path


class _Node:
    """A directory, file or symlink. Hard links share one node."""

    def __init__(self, mode, target=None):
        self.mode = mode
        self.data = b""
        self.target = target
        self.nlink = 1


class _MemFile(io.BytesIO):
    """Write handle that stores its content in the node on close."""

    def __init__(self, node):
        super().__init__()
        self._node = node

    def close(self):
        if not self.closed:
            self._node.data = self.getvalue()
        super().close()


def _error(code, path):
    return OSError(code, os.strerror(code), path)


class MemFilesystem(Filesystem):
    """Filesystem held entirely in memory."""

    def __init__(self, symlinks=True):
        """Initialize an empty tree.

        Args:
            symlinks: If False, symlink() fails with ENOTSUP, like some
                filesystems without symlink support do.
        """
        self.symlinks = symlinks
        self._nodes = {"": _Node(stat.S_IFDIR | 0o755)}

    def _resolve(self, path, follow_last, hops=0):
        """Return the cleaned physical path for path.

        Symlinks in the parent components are always followed; the last
        component is followed only if follow_last is set. The returned path
        need not exist, but its parent does and is a directory.
        """
        parts = clean_path(path).split("/") if clean_path(path) else []
        current = ""
        for i, part in enumerate(parts):
            candidate = posixpath.join(current, part) if current else part
            node = self._nodes.get(candidate)
            is_last = i == len(parts) - 1
            if node is None:
                if not is_last:
                    raise _error(errno.ENOENT, path)
                return candidate
            if stat.S_ISLNK(node.mode) and (follow_last or not is_last):
                if hops >= MAX_SYMLINK_HOPS:
                    raise _error(errno.ELOOP, path)
                if node.target.startswith("/"):
                    link_path = node.target
                else:
                    link_path = posixpath.join(current, node.target)
                rest = parts[i + 1:]
                current = self._resolve(link_path, True, hops + 1)
                if rest:
                    return self._resolve(
                        posixpath.join(current, *rest), follow_last, hops + 1)
                return current
            if not is_last and not stat.S_ISDIR(node.mode):
                raise _error(errno.ENOTDIR, path)
            current = candidate
        return current

    def _lookup(self, path, follow_last):
        resolved = self._resolve(path, follow_last)
        node = self._nodes.get(resolved)
        if node is None:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)
        return resolved, node

    def _create(self, path, node):
        """Add node at path. The parent must exist and nothing may be there."""
        resolved = self._resolve(path, False)
        if resolved in self._nodes:
            raise _error(errno.EEXIST, path)
        parent = self._nodes.get(posixpath.dirname(resolved))
        if parent is None:
            raise _error(errno.ENOENT, path)
        if not stat.S_ISDIR(parent.mode):
            raise _error(errno.ENOTDIR, path)
        self._nodes[resolved] = node

    def open_file(self, path, mode):
        resolved = self._resolve(path, True)
        node = self._nodes.get(resolved)
        if node is None:
            node = _Node(stat.S_IFREG | (mode & 0o7777))
            self._create(resolved, node)
        elif stat.S_ISDIR(node.mode):
            raise _error(errno.EISDIR, path)
        return _MemFile(node)

    def stat(self, path):
        _, node = self._lookup(path, False)
        size = len(node.target) if stat.S_ISLNK(node.mode) else len(node.data)
        # (mode, ino, dev, nlink, uid, gid, size, atime, mtime, ctime)
        return os.stat_result((node.mode, id(node), 0, node.nlink, 0, 0,
                               size, 0, 0, 0))

    def readlink(self, path):
        _, node = self._lookup(path, False)
        if not stat.S_ISLNK(node.mode):
            raise _error(errno.EINVAL, path)
        return node.target

    def mkdir_all(self, path, perm):
        parts = clean_path(path).split("/") if clean_path(path) else []
        current = ""
        for part in parts:
            current = posixpath.join(current, part) if current else part
            try:
                _, node = self._lookup(current, True)
            except FileNotFoundError:
                self._create(current, _Node(stat.S_IFDIR | (perm & 0o7777)))
                continue
            if not stat.S_ISDIR(node.mode):
                raise _error(errno.ENOTDIR if current != clean_path(path)
                             else errno.EEXIST, path)

    def symlink(self, target, path):
        if not self.symlinks:
            raise _error(errno.ENOTSUP, path)
        self._create(path, _Node(stat.S_IFLNK | 0o777, target=target))

    def link(self, target, path):
        _, node = self._lookup(target, False)
        if stat.S_ISDIR(node.mode):
            raise _error(errno.EPERM, target)
        self._create(path, node)
        node.nlink += 1

    # ------------------------------------------------------------------
    # Inspection helpers for tests.
    # ------------------------------------------------------------------

    def read_file(self, path) -> bytes:
        """Return the content of the regular file at path."""
        _, node = self._lookup(path, True)
        if not stat.S_ISREG(node.mode):
            raise _error(errno.EISDIR, path)
        return node.data

    def exists(self, path) -> bool:
        try:
            self._lookup(path, False)
        except OSError:
            return False
        return True

    def paths(self):
        """Return every path in the tree except the root, sorted."""
        return sorted(p for p in self._nodes if p)
