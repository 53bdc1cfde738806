"""File-level entry points -- read NEF files from disk and decode them, singly or in batches.

Supports both sequential and parallel (thread pool) batch processing. The
decoder itself (``nefparser.nef``) only ever sees bytes.
"""

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, List, Optional

from nefparser.exceptions import NEFError
from nefparser.models import BatchResult, ParseResult
from nefparser.nef import parse_nef
from nefparser.nikon.lens_ids import LensTable

NEF_EXTENSION = '.nef'


def is_nef_path(filepath: Path) -> bool:
    """True if the file name ends in .nef (any case)."""
    return Path(filepath).suffix.lower() == NEF_EXTENSION


def parse_file(filepath: Path, lens_table: Optional[LensTable] = None) -> ParseResult:
    """Read and decode a single NEF file.

    Fatal decode errors and I/O errors are stored on the result as strings;
    a fatal error that happened after the header was accepted still returns
    the partial record.
    """
    filepath = Path(filepath)
    t0 = time.monotonic()

    if not is_nef_path(filepath):
        return ParseResult(filepath=filepath,
                           error=f'Not a NEF file: {filepath.name}')

    try:
        data = filepath.read_bytes()
    except OSError as e:
        return ParseResult(filepath=filepath, error=f'Cannot read file: {e}')

    result = ParseResult(filepath=filepath, file_size=len(data))
    try:
        result.record = parse_nef(data, lens_table)
    except NEFError as e:
        result.record = e.record
        result.error = f'{type(e).__name__}: {e}'

    result.parse_time_ms = (time.monotonic() - t0) * 1000
    return result


def collect_nef_files(path: Path) -> List[Path]:
    """Collect NEF files from a path (file or directory, searched recursively)."""
    path = Path(path)
    if path.is_file():
        return [path]

    files = []
    for root, _, filenames in os.walk(path):
        for fname in sorted(filenames):
            if is_nef_path(Path(fname)):
                files.append(Path(root) / fname)
    files.sort()
    return files


def parse_batch(
    input_path: Path,
    lens_table: Optional[LensTable] = None,
    progress_callback: Optional[Callable] = None,
    workers: int = 1,
) -> BatchResult:
    """Decode every NEF file under ``input_path``.

    Args:
        input_path: File or directory containing NEF files.
        lens_table: Lens-ID table shared by all files (read-only).
        progress_callback: Called with (index, total, filepath, result) after each file.
        workers: Number of parallel workers. 1 = sequential (default).

    Returns:
        BatchResult with results in file order and summary counts.
    """
    t0 = time.monotonic()
    if lens_table is None:
        lens_table = LensTable.default()

    files = collect_nef_files(Path(input_path))
    total = len(files)
    batch = BatchResult(total_files=total)

    if workers > 1 and total > 1:
        results = _batch_parallel(files, lens_table, workers, progress_callback, batch)
    else:
        results = _batch_sequential(files, lens_table, progress_callback, batch)

    batch.results = results
    batch.total_time_seconds = time.monotonic() - t0
    return batch


def _batch_sequential(
    files: List[Path],
    lens_table: LensTable,
    progress_callback: Optional[Callable],
    batch: BatchResult,
) -> List[ParseResult]:
    results = []
    total = len(files)

    for i, filepath in enumerate(files):
        result = parse_file(filepath, lens_table)
        results.append(result)
        _update_batch_stats(batch, result)

        if progress_callback:
            progress_callback(i + 1, total, filepath, result)

    return results


def _batch_parallel(
    files: List[Path],
    lens_table: LensTable,
    workers: int,
    progress_callback: Optional[Callable],
    batch: BatchResult,
) -> List[ParseResult]:
    """Process files in parallel using a thread pool.

    Files are processed concurrently but results are collected in
    submission order for deterministic output.
    """
    total = len(files)
    results = [None] * total
    lock = threading.Lock()
    completed_count = [0]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {}
        for i, filepath in enumerate(files):
            future = executor.submit(parse_file, filepath, lens_table)
            futures[future] = (i, filepath)

        for future in as_completed(futures):
            index, filepath = futures[future]
            result = future.result()
            results[index] = result

            with lock:
                _update_batch_stats(batch, result)
                completed_count[0] += 1
                if progress_callback:
                    progress_callback(completed_count[0], total, filepath, result)

    return results


def _update_batch_stats(batch: BatchResult, result: ParseResult):
    if result.error:
        batch.files_errored += 1
    elif result.is_partial:
        batch.files_partial += 1
    else:
        batch.files_parsed += 1
