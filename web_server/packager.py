"""
Build-time packaging of the frontend bundle.

Runs the frontend's own install and build commands in the project root,
then embeds every file of the produced dist/ directory into the resource
archive shipped with the ``web_server`` package.

Can be run from the CLI:
    web-server-package                         # pnpm install && pnpm build in the parent directory
    web-server-package --root ../frontend      # different project root
    web-server-package --skip-build            # embed an existing dist/ as-is
"""

import argparse
import logging
import shlex
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from web_server.config import configure_logging, load_settings
from web_server.resources import ARCHIVE_PATH, ResourceTable

logger = logging.getLogger(__name__)

# Frontend checkout this project lives in; dist/ is produced there
PROJECT_DIR = Path(__file__).resolve().parent.parent
DEFAULT_ROOT = PROJECT_DIR.parent
DEFAULT_COMMANDS = [["pnpm", "install"], ["pnpm", "build"]]


class PackagingError(RuntimeError):
    """An external build command could not run or exited unsuccessfully."""

    def __init__(self, command: str, args: Sequence[str], returncode: Optional[int], reason: str):
        self.command = command
        self.arguments = list(args)
        self.returncode = returncode
        super().__init__(f"command {command!r} {self.arguments!r} failed with status: {reason}")


def run_command(cwd: Path, command: Sequence[str]) -> None:
    """Run ``command`` in ``cwd`` with inherited stdout/stderr and wait for it."""
    if not command:
        raise PackagingError("", [], None, "empty command")
    program, *args = command
    try:
        proc = subprocess.run([program, *args], cwd=str(cwd))
    except OSError as e:
        raise PackagingError(program, args, None, f"could not be spawned ({e})") from e
    if proc.returncode != 0:
        raise PackagingError(program, args, proc.returncode, f"exit status: {proc.returncode}")


def package(
    root: Path = DEFAULT_ROOT,
    dist: Optional[Path] = None,
    output: Path = ARCHIVE_PATH,
    commands: Optional[List[Sequence[str]]] = None,
) -> ResourceTable:
    """Build the frontend and write its dist/ directory to ``output``.

    Nothing is written unless every command succeeds, so a failed build
    leaves the previously generated archive in place.
    """
    root = Path(root)
    dist = Path(dist) if dist is not None else root / "dist"
    commands = DEFAULT_COMMANDS if commands is None else commands
    if any(not command for command in commands):
        raise PackagingError("", [], None, "empty command")

    for command in commands:
        logger.info(f"Running `{shlex.join(command)}` in {root}")
        run_command(root, command)

    table = ResourceTable.from_directory(dist)
    table.write_archive(output)
    logger.info(f"Embedded {len(table)} files from {dist} into {output}")
    return table


def package_for_build(root: Path, skip_build: bool = False, output: Path = ARCHIVE_PATH) -> None:
    """Embed the bundle ahead of a wheel or editable build.

    With ``skip_build`` an existing dist/ is embedded as-is; if there is none,
    an archive from an earlier run is kept.
    """
    root = Path(root)
    output = Path(output)
    if skip_build and not (root / "dist").is_dir() and output.is_file():
        logger.warning(f"No dist/ under {root}, keeping existing {output}")
        return
    package(root=root, output=output, commands=[] if skip_build else None)


# ── CLI entry point ──────────────────────────────────────────────────────────

def _command(value: str) -> List[str]:
    command = shlex.split(value)
    if not command:
        raise argparse.ArgumentTypeError("command must not be empty")
    return command


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Build and embed the frontend bundle")
    parser.add_argument("--root", default=str(DEFAULT_ROOT), help="Frontend project root")
    parser.add_argument("--dist", default=None, help="Build output directory (default: <root>/dist)")
    parser.add_argument("--output", default=str(ARCHIVE_PATH), help="Resource archive to write")
    parser.add_argument("--install-cmd", default=["pnpm", "install"], type=_command, help="Dependency install command")
    parser.add_argument("--build-cmd", default=["pnpm", "build"], type=_command, help="Bundle build command")
    parser.add_argument("--skip-build", action="store_true", help="Embed an existing dist/ without building")
    args = parser.parse_args(argv)

    configure_logging(load_settings().log_level)

    commands = [] if args.skip_build else [args.install_cmd, args.build_cmd]
    try:
        package(
            root=Path(args.root),
            dist=Path(args.dist) if args.dist else None,
            output=Path(args.output),
            commands=commands,
        )
    except (PackagingError, OSError) as e:
        logger.error(f"Packaging failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
