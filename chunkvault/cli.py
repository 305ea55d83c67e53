"""Command-line interface for chunkvault."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Callable, List, Optional, Sequence, Tuple

from colorama import Fore, Style, init as colorama_init
from tqdm import tqdm

from .common.logging import setup_logging
from .config import Config, load_config
from .core.crypto import encode_key, generate_key
from .core.manifest import Manifest
from .downloader import reconstruct_file
from .transport import Transport
from .uploader import manifest_path_for, split_file
from .utils import ChunkVaultError, format_bytes


def _command_showcase() -> List[Tuple[str, str, str]]:
    return [
        ("run <file> <dir> [chunks]", "Split then rebuild", "One-shot round trip with a throwaway key."),
        ("split <file> <dir>", "Split and upload", "Needs CHUNKVAULT_KEY."),
        ("reconstruct <manifest> <dir>", "Download and rebuild", "Needs CHUNKVAULT_KEY."),
        ("keygen", "Generate a key", "Prints a fresh base64 key."),
    ]


def _print_command_help(title: str) -> None:
    print(title)
    print("Usage: chunkvault <command> [options]")
    print("\nAvailable commands:\n")
    for command, label, usecase in _command_showcase():
        print(f"  {command:<30} - {label} ({usecase})")
    print("\nExamples:")
    print("  chunkvault run ./photo.jpg ./out 4")
    print("  CHUNKVAULT_KEY=... chunkvault split ./photo.jpg ./out --chunks 8")
    print("  CHUNKVAULT_KEY=... chunkvault reconstruct ./out/manifest.json ./restored")
    print("")


class _FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        _print_command_help(f"{Fore.RED}Error:{Style.RESET_ALL} {message}")
        raise SystemExit(2)


def _chunk_count(value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid chunk count: {value!r}") from exc


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = _FriendlyArgumentParser(description="chunkvault CLI")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Split, upload, then reconstruct")
    run_parser.add_argument("input_file", help="File to split")
    run_parser.add_argument("output_dir", help="Directory for manifest and output")
    run_parser.add_argument("chunk_count", nargs="?", type=_chunk_count, default=None)

    split_parser = subparsers.add_parser("split", help="Split and upload a file")
    split_parser.add_argument("input_file", help="File to split")
    split_parser.add_argument("output_dir", help="Directory for manifest.json")
    split_parser.add_argument("--chunks", type=_chunk_count, default=None, help="Number of chunks (default: 5)")

    rebuild_parser = subparsers.add_parser("reconstruct", help="Rebuild a file from its manifest")
    rebuild_parser.add_argument("manifest", help="Path to manifest.json")
    rebuild_parser.add_argument("output_dir", help="Destination directory")

    subparsers.add_parser("keygen", help="Generate an encryption key")
    subparsers.add_parser("help", help="Show help and usage examples")

    return parser.parse_args(argv)


def _progress(desc: str) -> Tuple[tqdm, Callable[[int, int], None]]:
    progress = tqdm(total=0, desc=desc, unit="chunk")

    def _update(done: int, total: int) -> None:
        progress.n = done
        progress.total = total
        progress.refresh()

    return progress, _update


async def _split(config: Config, key: bytes, args: argparse.Namespace, chunk_count: Optional[int]) -> Manifest:
    progress, update = _progress("Uploading")
    try:
        async with Transport.from_config(config) as transport:
            return await split_file(
                args.input_file,
                args.output_dir,
                chunk_count,
                key,
                transport,
                progress_callback=update,
            )
    finally:
        progress.close()


async def _reconstruct(config: Config, key: bytes, manifest_path: str, output_dir: str):
    progress, update = _progress("Downloading")
    try:
        async with Transport.from_config(config) as transport:
            return await reconstruct_file(
                manifest_path, output_dir, key, transport, progress_callback=update
            )
    finally:
        progress.close()


def _report_split(manifest: Manifest, output_dir: str) -> bool:
    path = manifest_path_for(output_dir)
    if not manifest.is_complete:
        print(
            f"{Fore.RED}Manifest saved at {path} but chunks {manifest.missing} "
            f"failed to upload; the file cannot be reconstructed.{Style.RESET_ALL}",
            file=sys.stderr,
        )
        return False
    print(
        f"{Fore.GREEN}✓ Split into {len(manifest.entries)} chunks "
        f"({format_bytes(manifest.original_size or 0)}). Manifest: {path}{Style.RESET_ALL}"
    )
    return True


def command_keygen(_: argparse.Namespace) -> int:
    print(encode_key(generate_key()))
    return 0


def command_split(args: argparse.Namespace, config: Config) -> int:
    key = config.require_key()
    manifest = asyncio.run(_split(config, key, args, args.chunks))
    return 0 if _report_split(manifest, args.output_dir) else 1


def command_reconstruct(args: argparse.Namespace, config: Config) -> int:
    key = config.require_key()
    rebuilt = asyncio.run(_reconstruct(config, key, args.manifest, args.output_dir))
    print(f"{Fore.GREEN}✓ Restored to: {rebuilt.path} (checksums match){Style.RESET_ALL}")
    return 0


def command_run(args: argparse.Namespace, config: Config) -> int:
    key = generate_key()
    config = replace(config, encryption_key=key)
    manifest = asyncio.run(_split(config, key, args, args.chunk_count))
    if not _report_split(manifest, args.output_dir):
        return 1
    rebuilt = asyncio.run(
        _reconstruct(config, key, str(manifest_path_for(args.output_dir)), args.output_dir)
    )
    print(f"{Fore.GREEN}✓ Restored to: {rebuilt.path} (checksums match){Style.RESET_ALL}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Process exit code.
    """
    colorama_init()
    args = parse_arguments(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        if not args.command:
            _print_command_help("Choose a command to continue.")
            return 0
        if args.command == "help":
            _print_command_help("chunkvault CLI Help")
            return 0
        if args.command == "keygen":
            return command_keygen(args)

        config = load_config()
        if args.command == "run":
            return command_run(args, config)
        if args.command == "split":
            return command_split(args, config)
        if args.command == "reconstruct":
            return command_reconstruct(args, config)
    except ChunkVaultError as exc:
        print(f"{Fore.RED}Error: {exc}{Style.RESET_ALL}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
