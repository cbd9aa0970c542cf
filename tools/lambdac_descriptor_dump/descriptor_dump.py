#!/usr/bin/env python3
"""
lambdac Descriptor Dump - pretty-print call-site descriptors.

Descriptors are read as hex strings, either from the command line or one per
line from a file.  Type ids are shown as numbers; ids of the primitive types
(which every type table interns first, in a fixed order) are also named.

Usage:
    python descriptor_dump.py 0001000000020000000200 00
    python descriptor_dump.py --file descriptors.txt
    python descriptor_dump.py --verbose 00010000000200000002 0000
"""

import argparse
import logging
from pathlib import Path
import sys
from typing import List

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from lambdac.lambdac_descriptor import LambdacDescriptorFields, read_descriptor
from lambdac.lambdac_error import LambdacDescriptorError
from lambdac.lambdac_type_table import LambdacTypeTable
from lambdac.lambdac_types import PRIMITIVE_TYPES


def format_type_id(type_id: int, table: LambdacTypeTable) -> str:
    """Format a type id, naming it if it is one of the primitive types."""
    for primitive in PRIMITIVE_TYPES:
        if table.type_id(primitive) == type_id:
            return f"#{type_id} ({primitive.describe()})"

    return f"#{type_id}"


def format_descriptor(data: bytes, fields: LambdacDescriptorFields, table: LambdacTypeTable) -> List[str]:
    """Format the fields of one descriptor."""
    output = []
    output.append(f"Descriptor: {data.hex()} ({len(data)} bytes)")
    output.append(f"  strategy:       {fields.strategy.name}")
    output.append(f"  reference kind: {fields.reference_kind.name}")
    output.append(f"  parameters:     {len(fields.param_type_ids)}")
    for index, type_id in enumerate(fields.param_type_ids):
        output.append(f"    [{index}] {format_type_id(type_id, table)}")

    output.append(f"  returns:        {format_type_id(fields.return_type_id, table)}")
    output.append(f"  captures:       {len(fields.capture_type_ids)}")
    for index, type_id in enumerate(fields.capture_type_ids):
        output.append(f"    [{index}] {format_type_id(type_id, table)}")

    return output


def main() -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Pretty-print lambdac call-site descriptors",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s 00010000000200000002 0000       # Hex may be split into several arguments
  %(prog)s --file descriptors.txt          # One descriptor per line
        """
    )

    parser.add_argument(
        'hex',
        nargs='*',
        help='Descriptor bytes as hex (whitespace is ignored)'
    )

    parser.add_argument(
        '-f', '--file',
        type=str,
        help='File with one hex descriptor per line'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    descriptors: List[str] = []
    if args.hex:
        descriptors.append("".join(args.hex))

    if args.file:
        try:
            with open(args.file, 'r', encoding='utf-8') as f:
                descriptors.extend(line.strip() for line in f if line.strip())

        except OSError as e:
            print(f"Error: Cannot read {args.file}: {e}", file=sys.stderr)
            return 2

    if not descriptors:
        parser.print_usage(sys.stderr)
        return 2

    table = LambdacTypeTable()
    status = 0
    for text in descriptors:
        try:
            data = bytes.fromhex("".join(text.split()))
            fields = read_descriptor(data)

        except ValueError as e:
            print(f"Error: '{text}' is not valid hex: {e}", file=sys.stderr)
            status = 1
            continue

        except LambdacDescriptorError as e:
            print(str(e), file=sys.stderr)
            status = 1
            continue

        print("\n".join(format_descriptor(data, fields, table)))

    return status


if __name__ == "__main__":
    sys.exit(main())
