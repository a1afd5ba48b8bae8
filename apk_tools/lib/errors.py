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
"""Errors raised while installing a package body.

Every error aborts the whole installation. Each one names the archive
entry it was raised for, so a failed install can be traced back to the
offending path.
"""


class InstallError(Exception):
    """Base class for all installation failures."""

    def __init__(self, message, path=None):
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


class StreamFormatError(InstallError, ValueError):
    """The gzip layer or the tar structure is corrupt."""


class InstallIOError(InstallError, OSError):
    """A filesystem call failed while installing an entry."""

    def __init__(self, message, path=None, errno=None):
        super().__init__(message, path)
        self.errno = errno


class UnsupportedEntryError(InstallError):
    """The archive holds an entry type we do not know how to install."""

    def __init__(self, type_code, path=None):
        super().__init__(f"unsupported file type {type_code!r}", path)
        self.type_code = type_code


class ShortContentError(InstallError):
    """An entry ended before its declared size."""

    def __init__(self, expected, actual, path=None):
        super().__init__(
            f"unexpected end of content: expected {expected} bytes, got {actual}",
            path)
        self.expected = expected
        self.actual = actual
