#!/usr/bin/env python3
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
"""Install the files of an APK package into a directory.

Only the package body is handled: no dependency resolution, no signature
checks, no installed database. The installed entries are printed one per
line with their apk checksum.

Usage:
    apk_install.py --root /tmp/rootfs foo-1.0-r0.apk
    apk_install.py --root /tmp/rootfs --manifest foo.json foo-1.0-r0.apk
"""

import argparse
import json
import logging
import os
import sys

from apk_tools.lib.apk_installer import ApkInstaller
from apk_tools.lib.checksum_writer import DEFAULT_CHUNK_SIZE
from apk_tools.lib.errors import InstallError
from apk_tools.lib.filesystem import DirFilesystem


def format_entry(entry):
    """Format one manifest entry as "<checksum> <kind> <name>"."""
    checksum = entry.checksum or "-"
    name = entry.name
    if entry.linkname:
        name = f"{name} -> {entry.linkname}"
    return f"{checksum:<30} {entry.kind.value:<8} {name}"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Install the files of an APK package into a directory"
    )
    parser.add_argument("package",
                        help="APK package body (gzip-compressed tar)")
    parser.add_argument("--root", default=".",
                        help="Directory to install into (default: current directory)")
    parser.add_argument("--manifest",
                        help="Also write the installed entries as JSON to this path")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE,
                        help=f"Copy buffer size in bytes (default: {DEFAULT_CHUNK_SIZE})")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Do not list installed entries")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log every entry as it is handled")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )

    if not os.path.isdir(args.root):
        print(f"ERROR: root {args.root} is not a directory", file=sys.stderr)
        return 1

    installer = ApkInstaller(DirFilesystem(args.root), chunk_size=args.chunk_size)
    try:
        with open(args.package, "rb") as f:
            manifest = installer.install(f)
    except (InstallError, OSError) as e:
        print(f"ERROR: {args.package}: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        for entry in manifest:
            print(format_entry(entry))

    if args.manifest:
        with open(args.manifest, "w") as out:
            json.dump([entry.to_dict() for entry in manifest], out, indent=2)

    return 0


if __name__ == "__main__":
    sys.exit(main())
