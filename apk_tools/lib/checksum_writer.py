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
"""Write one regular file while computing its apk checksum.

The content is read, written and hashed in a single pass, so the checksum
always describes exactly the bytes that landed on the target filesystem.

Usage:
    writer = ChecksumWriter(fs)
    checksum = writer.write("etc/motd", 0o644, len(data), io.BytesIO(data))
"""

import gzip
import hashlib
import logging
import tarfile
import zlib

from apk_tools.lib.entry import format_checksum
from apk_tools.lib.errors import InstallIOError, ShortContentError, StreamFormatError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class ChecksumWriter:
    """Copy declared-size content into a filesystem, hashing it with SHA-1."""

    def __init__(self, fs, chunk_size=DEFAULT_CHUNK_SIZE):
        """Initialize writer.

        Args:
            fs: Filesystem to create files in.
            chunk_size: Maximum number of bytes read from the source at once.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.fs = fs
        self.chunk_size = chunk_size

    def _read(self, reader, size, path):
        try:
            return reader.read(size)
        except (tarfile.ReadError, EOFError):
            # Raised by tarfile and gzip when the archive stops short.
            return b""
        except (gzip.BadGzipFile, zlib.error) as e:
            raise StreamFormatError(f"corrupt compressed data: {e}", path) from e

    def write(self, path, mode, size, reader) -> str:
        """Create path and fill it with exactly size bytes from reader.

        Args:
            path: Target path within the filesystem.
            mode: Permission bits for the new file.
            size: Number of bytes to copy.
            reader: Binary file-like object to copy from.

        Returns:
            str: The apk checksum attribute of the written content.

        Raises:
            InstallIOError: the file could not be created, written or closed.
            ShortContentError: reader ran dry before size bytes.
        """
        digest = hashlib.sha1()
        try:
            f = self.fs.open_file(path, mode & 0o7777)
        except OSError as e:
            raise InstallIOError(f"error creating file: {e}", path, e.errno) from e

        written = 0
        try:
            with f:
                while written < size:
                    chunk = self._read(reader, min(self.chunk_size, size - written), path)
                    if not chunk:
                        raise ShortContentError(size, written, path)
                    f.write(chunk)
                    digest.update(chunk)
                    written += len(chunk)
        except OSError as e:
            raise InstallIOError(f"unable to write content: {e}", path, e.errno) from e

        logger.debug("wrote %d bytes to %s", written, path)
        return format_checksum(digest.digest())
