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
"""Installed entries and the apk-tools checksum attribute."""

import base64
import enum
import hashlib
import tarfile
from dataclasses import dataclass, field
from typing import Dict, Optional

# apk-tools tags SHA-1 checksums with "Q1".
CHECKSUM_PREFIX = "Q1"

# PAX record key apk-tools consumers read the checksum from.
CHECKSUM_PAX_KEY = "APK-TOOLS.checksum.SHA1"


def format_checksum(digest: bytes) -> str:
    """Format a raw 20 byte SHA-1 digest as an apk checksum attribute."""
    if len(digest) != 20:
        raise ValueError(f"SHA-1 digest must be 20 bytes, got {len(digest)}")
    return CHECKSUM_PREFIX + base64.b64encode(digest).decode("ascii")


def compute_checksum(data: bytes) -> str:
    """Return the checksum attribute for a complete file content."""
    return format_checksum(hashlib.sha1(data).digest())


class EntryKind(enum.Enum):
    DIRECTORY = "dir"
    REGULAR = "file"
    SYMLINK = "symlink"
    HARDLINK = "hardlink"


@dataclass
class InstalledEntry:
    """One element of the installation manifest."""
    name: str
    kind: EntryKind
    mode: int     # permission bits only
    size: int = 0
    linkname: str = ""
    uid: int = 0
    gid: int = 0
    mtime: int = 0
    # PAX records as they appeared in the archive.
    pax_headers: Dict[str, str] = field(default_factory=dict)
    # Only set for REGULAR entries.
    checksum: Optional[str] = None

    @classmethod
    def from_tarinfo(cls, info: tarfile.TarInfo, kind: EntryKind,
                     checksum: Optional[str] = None) -> "InstalledEntry":
        # Archive spelling, so directories keep their trailing "/".
        name = getattr(info, "raw_name", None) or info.name
        return cls(
            name=name,
            kind=kind,
            mode=info.mode & 0o7777,
            size=info.size if kind == EntryKind.REGULAR else 0,
            linkname=info.linkname,
            uid=info.uid,
            gid=info.gid,
            mtime=int(info.mtime),
            pax_headers=dict(info.pax_headers),
            checksum=checksum,
        )

    def pax_records(self) -> Dict[str, str]:
        """Return the PAX records with the checksum under its apk-tools key.

        This is the shape apk-tools writes into its installed database, so
        callers exporting the manifest can stay interoperable with it.
        """
        records = dict(self.pax_headers)
        if self.checksum is not None:
            records[CHECKSUM_PAX_KEY] = self.checksum
        return records

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "kind": self.kind.value,
            "mode": oct(self.mode)[2:],
        }
        if self.uid != 0:
            d["uid"] = self.uid
        if self.gid != 0:
            d["gid"] = self.gid
        if self.kind == EntryKind.REGULAR:
            d["size"] = self.size
            d["checksum"] = self.checksum
        elif self.kind in (EntryKind.SYMLINK, EntryKind.HARDLINK):
            d["target"] = self.linkname
        return d
