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
"""Filesystem capability used by the installer.

The installer never touches the operating system directly. It talks to a
Filesystem object, which is either rooted in a real directory
(DirFilesystem) or held entirely in memory (see memfs.py).

All paths are archive paths: "/"-separated and relative to the root of the
target tree. A leading "/" is allowed and means the same thing.
"""

import errno
import os
import posixpath
import stat
from abc import ABC, abstractmethod

MAX_SYMLINK_HOPS = 40


def clean_path(path: str) -> str:
    """Normalize an archive path to a root-relative path.

    "..", "." and repeated slashes are collapsed, and the result can never
    climb above the root. The root itself is returned as "".
    """
    cleaned = posixpath.normpath("/" + path)
    # normpath keeps a leading "//".
    return cleaned.lstrip("/")


def _split(path):
    cleaned = clean_path(path)
    return cleaned.split("/") if cleaned else []


# ============================================================================
# Filesystem Interface
# ============================================================================


class Filesystem(ABC):
    """The six operations the installer needs from a target filesystem."""

    @abstractmethod
    def open_file(self, path: str, mode: int):
        """Create or truncate path for writing and return a binary file object.

        Args:
            path: File path within the filesystem.
            mode: Permission bits applied if the file is created.
        """
        pass

    @abstractmethod
    def stat(self, path: str) -> os.stat_result:
        """Return the status of path, without following a final symlink.

        Raises:
            FileNotFoundError: if nothing exists at path.
        """
        pass

    @abstractmethod
    def readlink(self, path: str) -> str:
        """Return the target of the symlink at path.

        Raises:
            OSError: if path is missing or not a symlink.
        """
        pass

    @abstractmethod
    def mkdir_all(self, path: str, perm: int):
        """Create path and any missing parents. An existing directory is fine."""
        pass

    @abstractmethod
    def symlink(self, target: str, path: str):
        """Create a symlink at path pointing to target."""
        pass

    @abstractmethod
    def link(self, target: str, path: str):
        """Create a hard link at path to the existing file target."""
        pass


# ============================================================================
# DirFilesystem: rooted in a real directory
# ============================================================================


class DirFilesystem(Filesystem):
    """Filesystem rooted at a directory on the host.

    Symlinks met while resolving a path are followed under the root: an
    absolute target starts again at the root and ".." stops there, the way
    they would inside a chroot. The final component is only followed by
    open_file and mkdir_all.
    """

    def __init__(self, root):
        """Initialize with the root directory.

        Args:
            root: Existing directory every path is resolved under.
        """
        self.root = os.fspath(root)

    def _host_path(self, path, follow_last=False):
        """Return the host path for path with every symlink resolved under root."""
        parts = _split(path)
        resolved = []
        hops = 0
        while parts:
            name = parts.pop(0)
            if not parts and not follow_last:
                resolved.append(name)
                break
            host = os.path.join(self.root, *resolved, name)
            try:
                is_link = stat.S_ISLNK(os.lstat(host).st_mode)
            except OSError:
                # Missing or unreadable. The operation itself reports it.
                is_link = False
            if not is_link:
                resolved.append(name)
                continue
            hops += 1
            if hops > MAX_SYMLINK_HOPS:
                raise OSError(errno.ELOOP, os.strerror(errno.ELOOP), path)
            target = os.readlink(host)
            if not target.startswith("/"):
                target = posixpath.join(*resolved, target) if resolved else target
            parts = _split(target) + parts
            resolved = []
        return os.path.join(self.root, *resolved)

    def open_file(self, path, mode):
        fd = os.open(self._host_path(path, follow_last=True),
                     os.O_CREAT | os.O_TRUNC | os.O_WRONLY, mode)
        return os.fdopen(fd, "wb")

    def stat(self, path):
        return os.lstat(self._host_path(path))

    def readlink(self, path):
        return os.readlink(self._host_path(path))

    def mkdir_all(self, path, perm):
        os.makedirs(self._host_path(path, follow_last=True), mode=perm,
                    exist_ok=True)

    def symlink(self, target, path):
        # The target is stored verbatim and only ever resolved under the root.
        os.symlink(target, self._host_path(path))

    def link(self, target, path):
        # link(2) semantics: a symlink target is linked, not followed.
        os.link(self._host_path(target), self._host_path(path),
                follow_symlinks=False)
