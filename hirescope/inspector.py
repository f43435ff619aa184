"""
Structural inspection of repository snapshots.

A selected repository is shallow-cloned into a private temporary directory,
scanned within a fixed entry budget and removed again. Every failure along
the way (oversized repository, clone timeout, unreadable file) degrades to
empty signals instead of failing the analysis.
"""

import asyncio
import os
import re
import shutil
import signal
import tempfile
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import AsyncIterator

from rich.console import Console

from hirescope.models import (
    ReadmeSignal,
    RepoSignals,
    RepoStructure,
    SelectionCandidate,
    SuiteSignal,
)
from hirescope.outcome import attempt
from hirescope.vcs.base import BaseVCSProvider

console = Console(stderr=True)

MAX_SCAN_ENTRIES = 8000
MAX_SCAN_DEPTH = 6
MAX_TREE_PREVIEW = 40
PREVIEW_MAX_DEPTH = 2

CLONE_TIMEOUT_SECONDS = 120
CLONE_MAX_OUTPUT_BYTES = 20 * 1024 * 1024
KILL_GRACE_SECONDS = 5
MAX_CLONE_SIZE_KB = 250000

WORKDIR_PREFIX = "hirescope-"

SOURCE_EXTENSIONS = frozenset(
    {
        ".js",
        ".jsx",
        ".ts",
        ".tsx",
        ".py",
        ".java",
        ".go",
        ".rb",
        ".rs",
        ".php",
        ".cs",
        ".cpp",
        ".c",
        ".h",
        ".hpp",
        ".swift",
        ".kt",
        ".kts",
        ".scala",
        ".sql",
        ".sh",
        ".html",
        ".css",
    }
)

IGNORED_DIRS = frozenset(
    {
        ".git",
        "node_modules",
        "dist",
        "build",
        "coverage",
        ".next",
        ".turbo",
        ".cache",
        "vendor",
        "target",
        "out",
        "venv",
        ".venv",
    }
)

_README_NAME = re.compile(r"^readme(\.|$)")
_LICENSE_NAME = re.compile(r"^licen[sc]e(\.|$)")
_TEST_SEGMENT = re.compile(r"(^|/)(__tests__|tests?|spec)(/|$)")
_TEST_INFIX = re.compile(r"\.(test|spec)\.")
_TEST_SUFFIX = re.compile(r"_test\.[a-z0-9]+$")
_TEST_DIR_NAME = re.compile(r"^(__tests__|tests?|spec)$")
_UNSAFE_DIR_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class CloneError(Exception):
    """Raised when a repository snapshot could not be cloned."""


def is_likely_test_path(relative_path: str, lower_name: str) -> bool:
    """Detect test files by directory segment or filename pattern."""
    if _TEST_SEGMENT.search(relative_path.lower()):
        return True
    if _TEST_INFIX.search(lower_name):
        return True
    return bool(_TEST_SUFFIX.search(lower_name))


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def scan_repository(root: Path) -> RepoStructure:
    """
    Scan a checked-out tree for structural signals.

    The walk is iterative (LIFO stack), visits entries of each directory in
    name order and stops after MAX_SCAN_ENTRIES entries. Ignored directories
    are pruned without being counted; directories deeper than MAX_SCAN_DEPTH
    are counted but not entered.

    Args:
        root: Root of the checkout.

    Returns:
        RepoStructure with the findings.
    """
    top_level: list[str] = []
    tree_preview: list[str] = []
    total_files = 0
    total_dirs = 0
    source_file_count = 0
    loc_estimate = 0
    readme_present = False
    readme_length = 0
    license_present = False
    test_directory_count = 0
    test_file_count = 0

    stack: list[tuple[Path, str, int]] = [(root, "", 0)]
    scanned = 0

    while stack and scanned < MAX_SCAN_ENTRIES:
        current, relative, depth = stack.pop()

        try:
            with os.scandir(current) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError:
            continue

        for entry in entries:
            if scanned >= MAX_SCAN_ENTRIES:
                break
            scanned += 1

            relative_path = f"{relative}/{entry.name}" if relative else entry.name
            lower_name = entry.name.lower()
            indent = "  " * depth

            if entry.is_dir(follow_symlinks=False):
                if lower_name in IGNORED_DIRS:
                    continue

                total_dirs += 1
                if depth == 0:
                    top_level.append(f"{entry.name}/")
                if _TEST_DIR_NAME.match(lower_name) or "test" in lower_name:
                    test_directory_count += 1
                if depth <= PREVIEW_MAX_DEPTH and len(tree_preview) < MAX_TREE_PREVIEW:
                    tree_preview.append(f"{indent}{entry.name}/")
                if depth < MAX_SCAN_DEPTH:
                    stack.append((Path(entry.path), relative_path, depth + 1))
                continue

            if not entry.is_file(follow_symlinks=False):
                continue

            total_files += 1
            if depth == 0:
                top_level.append(entry.name)
            if depth <= PREVIEW_MAX_DEPTH and len(tree_preview) < MAX_TREE_PREVIEW:
                tree_preview.append(f"{indent}{entry.name}")

            if not readme_present and _README_NAME.match(lower_name):
                readme_present = True
                readme_length = len(_read_text(Path(entry.path)) or "")

            if not license_present and _LICENSE_NAME.match(lower_name):
                license_present = True

            if is_likely_test_path(relative_path, lower_name):
                test_file_count += 1

            if os.path.splitext(lower_name)[1] not in SOURCE_EXTENSIONS:
                continue

            source_file_count += 1
            content = _read_text(Path(entry.path))
            if content is not None:
                loc_estimate += content.count("\n") + 1

    return RepoStructure(
        top_level=top_level,
        tree_preview=tree_preview,
        total_files=total_files,
        total_dirs=total_dirs,
        source_file_count=source_file_count,
        loc_estimate=loc_estimate,
        readme=ReadmeSignal(present=readme_present, length=readme_length),
        tests=SuiteSignal(
            test_directory_count=test_directory_count,
            test_file_count=test_file_count,
            has_tests=test_directory_count > 0 or test_file_count > 0,
        ),
        license_present=license_present,
    )


def empty_structure() -> RepoStructure:
    return RepoStructure(top_level=[], tree_preview=[])


@asynccontextmanager
async def ephemeral_workdir(prefix: str = WORKDIR_PREFIX) -> AsyncIterator[Path]:
    """Create a private temporary directory, removed on every exit path."""
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield temp_dir
    finally:
        await asyncio.to_thread(shutil.rmtree, temp_dir, ignore_errors=True)


async def _collect_output(process: asyncio.subprocess.Process) -> tuple[bytes, bytes]:
    """Read both pipes until EOF, failing as soon as the output ceiling is passed."""
    total = 0
    chunks: dict[str, list[bytes]] = {"stdout": [], "stderr": []}

    async def pump(name: str, stream: asyncio.StreamReader) -> None:
        nonlocal total
        while True:
            chunk = await stream.read(65536)
            if not chunk:
                return
            total += len(chunk)
            if total > CLONE_MAX_OUTPUT_BYTES:
                raise CloneError("git clone produced too much output")
            chunks[name].append(chunk)

    await asyncio.gather(
        pump("stdout", process.stdout), pump("stderr", process.stderr)
    )
    await process.wait()
    return b"".join(chunks["stdout"]), b"".join(chunks["stderr"])


async def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    # git spawns helpers (remote-https, index-pack) that share our pipes
    with suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, signal.SIGKILL)
    with suppress(asyncio.TimeoutError):
        await asyncio.wait_for(process.wait(), KILL_GRACE_SECONDS)


async def clone_repository(
    clone_url: str,
    target: Path,
    timeout: float = CLONE_TIMEOUT_SECONDS,
) -> None:
    """
    Shallow, single-branch, quiet clone of `clone_url` into `target`.

    git runs in its own session so that a timeout, an output overflow or a
    cancellation kills the whole process group.

    Raises:
        CloneError: On non-zero exit, timeout or oversized output.
    """
    process = await asyncio.create_subprocess_exec(
        "git",
        "clone",
        "--depth",
        "1",
        "--single-branch",
        "--quiet",
        clone_url,
        str(target),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )

    try:
        _, stderr = await asyncio.wait_for(_collect_output(process), timeout)
    except asyncio.TimeoutError:
        raise CloneError(f"git clone timed out after {timeout}s") from None
    finally:
        if process.returncode is None:
            await _kill_process_group(process)

    if process.returncode != 0:
        error_msg = stderr.decode(errors="replace").strip()
        raise CloneError(f"git clone failed ({process.returncode}): {error_msg}")


async def _clone_and_scan(candidate: SelectionCandidate, workdir: Path) -> RepoStructure:
    repo = candidate.repo
    if repo.size_kb > MAX_CLONE_SIZE_KB:
        raise CloneError(f"repository size {repo.size_kb} KB exceeds clone ceiling")
    if not repo.clone_url:
        raise CloneError("repository has no clone URL")

    clone_path = workdir / _UNSAFE_DIR_CHARS.sub("_", repo.name)
    await clone_repository(repo.clone_url, clone_path)
    return await asyncio.to_thread(scan_repository, clone_path)


async def inspect_repository(
    provider: BaseVCSProvider, candidate: SelectionCandidate
) -> RepoSignals:
    """
    Collect structural signals for one selected repository.

    The README is requested from the API in parallel with the clone; it only
    fills in README signals when the snapshot had none (oversized or failed
    clones).
    """
    repo = candidate.repo
    readme_task = asyncio.ensure_future(
        attempt(provider.get_readme(repo.owner, repo.name))
    )

    try:
        async with ephemeral_workdir() as workdir:
            outcome = await attempt(_clone_and_scan(candidate, workdir))
        readme_outcome = await readme_task
    finally:
        if not readme_task.done():
            readme_task.cancel()

    if not outcome.ok:
        console.print(
            f"  [yellow]⚠️  Structural scan skipped for {repo.owner}/{repo.name}: "
            f"{outcome.describe()}[/yellow]"
        )
    structure = outcome.or_default(empty_structure())

    readme_text = readme_outcome.or_default(None)
    readme = structure.readme
    if not readme.present and readme_text:
        readme = ReadmeSignal(present=True, length=len(readme_text))

    return RepoSignals(
        top_level=structure.top_level,
        tree_preview=structure.tree_preview,
        total_files=structure.total_files,
        total_dirs=structure.total_dirs,
        source_file_count=structure.source_file_count,
        loc_estimate=structure.loc_estimate,
        readme=readme,
        tests=structure.tests,
        license_present=structure.license_present,
        commit_metrics=candidate.commit_metrics,
        recency_days=candidate.factors.recency_days,
        has_issues=repo.has_issues,
        has_wiki=repo.has_wiki,
        archived=repo.is_archived,
        clone_succeeded=outcome.ok,
    )
