"""
msbt CLI: inspect and edit MsgStdBn message containers.

Commands:
  msbt info FILE                      - Header fields and section layout
  msbt labels FILE                    - Label table: index, bucket, name
  msbt dump FILE [-o OUT]             - Strings (with tags) as JSON
  msbt check FILE                     - Parse + re-serialize, compare bytes
  msbt rename FILE OLD NEW [-o OUT]   - Rename a label
  msbt set-text FILE LABEL TEXT [-o]  - Replace the text of a message
  msbt new OUT -m LABEL=TEXT ...      - Build a new file from scratch

Configuration is read from TOML (``--config``, ``$MSBT_CONFIG`` or
``~/.msbt/config.toml``).
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from msbt import CONFIG_DEFAULT_PATH, CONFIG_ENV_VAR, DEFAULT_LOG_LEVEL
from msbt._format.spec import DEFAULT_GROUP_COUNT, DEFAULT_PAD_BYTE

log = logging.getLogger(__name__)

# Default config
DEFAULT_CONFIG = {
    "log_level": DEFAULT_LOG_LEVEL,
    "encoding": "utf-16",
    "byte_order": "little",
    "pad_byte": DEFAULT_PAD_BYTE,
    "group_count": DEFAULT_GROUP_COUNT,
}


def _load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load CLI config from TOML file, falling back to defaults."""
    config = dict(DEFAULT_CONFIG)

    if config_path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        config_path = Path(env_path) if env_path else Path(CONFIG_DEFAULT_PATH).expanduser()
    if config_path.is_file():
        try:
            import tomllib
        except ImportError:
            import tomli as tomllib

        try:
            with open(config_path, "rb") as f:
                file_config = tomllib.load(f)
            config.update(file_config)
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Failed to load config from %s: %s", config_path, e)

    return config


def _setup_logging(config: dict[str, Any], verbose: bool) -> None:
    level = logging.DEBUG if verbose else str(config.get("log_level", DEFAULT_LOG_LEVEL)).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _open(path: str):
    from msbt import Msbt, MsbtError

    try:
        return Msbt.read(path)
    except FileNotFoundError:
        _fail(f"File not found: {path}")
    except MsbtError as e:
        _fail(f"{path}: {e}")


def _element_json(element) -> dict[str, Any]:
    from msbt import Tag, Text

    if isinstance(element, Text):
        return {"text": element.value}
    if isinstance(element, Tag):
        return {"tag": [element.group, element.kind], "params": element.params.hex()}
    return {"end": [element.group, element.kind]}


def cmd_info(args: argparse.Namespace) -> None:
    """Show header fields and section layout."""
    msbt = _open(args.path)
    header = msbt.header
    print(f"{args.path}")
    print(f"  byte order: {header.byte_order.name.lower()}")
    print(f"  encoding:   {header.encoding.name}")
    print(f"  sections:   {len(msbt.section_order)} (declared {header.section_count})")
    print(f"  file size:  {msbt.calc_size()} (declared {header.file_size})")
    print(f"  pad byte:   0x{msbt.pad_byte:02x}")
    for tag in msbt.section_order:
        section = msbt.section(tag)
        line = f"  {tag.name}  {section.section.size:>8} bytes"
        if hasattr(section, "__len__"):
            line += f"  {len(section)} entries"
        print(line)


def cmd_labels(args: argparse.Namespace) -> None:
    """List labels with their bucket numbers."""
    msbt = _open(args.path)
    if msbt.lbl1 is None:
        print("No label table.")
        return
    lbl1 = msbt.lbl1
    print(f"{len(lbl1)} label(s) in {len(lbl1.groups)} bucket(s)\n")
    for index, label in enumerate(lbl1.labels):
        print(f"  {index:>5}  [{lbl1.checksum(label):>3}]  {label.name}")


def cmd_dump(args: argparse.Namespace) -> None:
    """Dump messages as JSON."""
    msbt = _open(args.path)
    ids_by_index: dict[int, int] = {}
    if msbt.nli1 is not None:
        ids_by_index = {index: global_id for global_id, index in msbt.nli1.items()}

    messages = []
    for index, (label, elements) in enumerate(msbt.messages()):
        entry: dict[str, Any] = {"index": index, "label": label}
        if index in ids_by_index:
            entry["global_id"] = ids_by_index[index]
        entry["elements"] = [_element_json(e) for e in elements]
        messages.append(entry)

    doc = {
        "encoding": msbt.header.encoding.name,
        "byte_order": msbt.header.byte_order.name.lower(),
        "sections": [tag.name for tag in msbt.section_order],
        "messages": messages,
    }
    data = json.dumps(doc, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(data + "\n", encoding="utf-8")
        print(f"Dumped {len(messages)} message(s) -> {args.output}")
    else:
        print(data)


def cmd_check(args: argparse.Namespace) -> None:
    """Verify the file survives a parse/serialize round trip unchanged."""
    msbt = _open(args.path)
    original = Path(args.path).read_bytes()
    written = msbt.to_bytes()
    if written == original:
        print(f"OK: {args.path} round-trips ({len(original)} bytes)")
        return
    diff_at = next(
        (i for i, (a, b) in enumerate(zip(original, written)) if a != b),
        min(len(original), len(written)),
    )
    print(
        f"FAIL: {args.path} differs at byte 0x{diff_at:x} "
        f"({len(original)} bytes in, {len(written)} bytes out)"
    )
    sys.exit(1)


def cmd_rename(args: argparse.Namespace) -> None:
    """Rename a label."""
    from msbt import MsbtError

    msbt = _open(args.path)
    if msbt.lbl1 is None:
        _fail(f"{args.path} has no label table")
    index = msbt.lbl1.index_of(args.old)
    if index is None:
        _fail(f"Label not found: {args.old}")
    if msbt.lbl1.index_of(args.new) is not None:
        _fail(f"Label already exists: {args.new}")

    try:
        with msbt.lbl1_mut() as lbl1:
            lbl1.rename(index, args.new)
    except MsbtError as e:
        _fail(str(e))

    output = args.output or args.path
    nbytes = msbt.write(output)
    print(f"Renamed {args.old} -> {args.new} ({output}, {nbytes} bytes)")


def cmd_set_text(args: argparse.Namespace) -> None:
    """Replace a message's text (drops any tags in it)."""
    from msbt import MsbtError

    msbt = _open(args.path)
    if msbt.lbl1 is None or msbt.txt2 is None:
        _fail(f"{args.path} needs both LBL1 and TXT2 sections")
    index = msbt.lbl1.index_of(args.label)
    if index is None or index >= len(msbt.txt2):
        _fail(f"Label not found: {args.label}")

    try:
        with msbt.txt2_mut() as txt2:
            txt2.set_text(index, args.text)
    except MsbtError as e:
        _fail(str(e))

    output = args.output or args.path
    nbytes = msbt.write(output)
    print(f"Updated {args.label} ({output}, {nbytes} bytes)")


def cmd_new(args: argparse.Namespace, config: dict[str, Any]) -> None:
    """Build a new container from LABEL=TEXT pairs."""
    from msbt import ByteOrder, Encoding, MsbtBuilder, MsbtError

    encoding_name = (args.encoding or config["encoding"]).lower().replace("-", "")
    encodings = {"utf8": Encoding.UTF8, "utf16": Encoding.UTF16}
    if encoding_name not in encodings:
        _fail(f"Unknown encoding: {encoding_name!r} (use utf-8 or utf-16)")
    byte_order = ByteOrder.BIG if (args.big_endian or config["byte_order"] == "big") else ByteOrder.LITTLE

    builder = MsbtBuilder(
        encoding=encodings[encoding_name],
        byte_order=byte_order,
        pad_byte=int(config["pad_byte"]),
        group_count=int(config["group_count"]),
    )
    for item in args.message or []:
        if "=" not in item:
            _fail(f"Message must be LABEL=TEXT, got {item!r}")
        label, text = item.split("=", 1)
        try:
            builder.message(label, text)
        except (ValueError, MsbtError) as e:
            _fail(str(e))

    try:
        msbt = builder.build()
    except (ValueError, MsbtError) as e:
        _fail(str(e))
    nbytes = msbt.write(args.output)
    print(f"Wrote {args.output} ({len(args.message or [])} message(s), {nbytes} bytes)")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="msbt",
        description="Inspect and edit MsgStdBn message containers.",
    )
    from msbt import __version__
    parser.add_argument("--version", action="version", version=f"msbt {__version__}")
    parser.add_argument("--config", help="Path to TOML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # info
    p_info = sub.add_parser("info", help="Show header fields and section layout")
    p_info.add_argument("path", help="Path to .msbt file")

    # labels
    p_labels = sub.add_parser("labels", help="List labels and their buckets")
    p_labels.add_argument("path", help="Path to .msbt file")

    # dump
    p_dump = sub.add_parser("dump", help="Dump messages as JSON")
    p_dump.add_argument("path", help="Path to .msbt file")
    p_dump.add_argument("-o", "--output", help="Output JSON path (default: stdout)")

    # check
    p_check = sub.add_parser("check", help="Verify byte-identical round trip")
    p_check.add_argument("path", help="Path to .msbt file")

    # rename
    p_rename = sub.add_parser("rename", help="Rename a label")
    p_rename.add_argument("path", help="Path to .msbt file")
    p_rename.add_argument("old", help="Current label name")
    p_rename.add_argument("new", help="New label name")
    p_rename.add_argument("-o", "--output", help="Output path (default: in place)")

    # set-text
    p_set = sub.add_parser("set-text", help="Replace the text of a message")
    p_set.add_argument("path", help="Path to .msbt file")
    p_set.add_argument("label", help="Label of the message")
    p_set.add_argument("text", help="New text")
    p_set.add_argument("-o", "--output", help="Output path (default: in place)")

    # new
    p_new = sub.add_parser("new", help="Build a new .msbt file")
    p_new.add_argument("output", help="Output path")
    p_new.add_argument("-m", "--message", action="append", help="LABEL=TEXT (repeatable)")
    p_new.add_argument("--encoding", help="utf-8 or utf-16 (default from config)")
    p_new.add_argument("--big-endian", action="store_true", help="Write big-endian")

    args = parser.parse_args(argv)

    config = _load_config(Path(args.config) if args.config else None)
    _setup_logging(config, args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if args.command == "new":
        cmd_new(args, config)
        return

    commands = {
        "info": cmd_info,
        "labels": cmd_labels,
        "dump": cmd_dump,
        "check": cmd_check,
        "rename": cmd_rename,
        "set-text": cmd_set_text,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
