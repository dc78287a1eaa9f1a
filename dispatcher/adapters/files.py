"""File context collection for HTTP-backed tools."""

import logging
from fnmatch import fnmatch
from pathlib import Path

from dispatcher.models import ExecutionContext, FileContext

logger = logging.getLogger(__name__)

MAX_FILES = 50
MAX_FILE_BYTES = 100_000

LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".php": "php",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".swift": "swift",
    ".sh": "shell",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".md": "markdown",
}


def language_for(path: str | Path) -> str | None:
    return LANGUAGES.get(Path(path).suffix.lower())


def collect_files(
    context: ExecutionContext,
    max_files: int = MAX_FILES,
    max_bytes: int = MAX_FILE_BYTES,
) -> list[FileContext]:
    """Resolve the files to send along with a request.

    Explicit ``context.files`` win. Otherwise files under the directory
    matching an ``include`` glob and no ``exclude`` glob are read, skipping
    files that are too large or not UTF-8 text.

    Args:
        context: Execution context of the request
        max_files: Stop after this many files
        max_bytes: Skip files larger than this

    Returns:
        List of FileContext with paths relative to the directory
    """
    if context.files:
        return list(context.files)
    if not context.include:
        return []

    root = Path(context.directory)
    if not root.is_dir():
        return []

    exclude = context.exclude or ()
    seen: set[Path] = set()
    files: list[FileContext] = []

    for pattern in context.include:
        for path in sorted(root.glob(pattern)):
            if path in seen or not path.is_file():
                continue
            seen.add(path)

            relative = path.relative_to(root).as_posix()
            if any(fnmatch(relative, ex) for ex in exclude):
                continue

            try:
                if path.stat().st_size > max_bytes:
                    logger.debug(f"Skipping {relative}: larger than {max_bytes} bytes")
                    continue
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.debug(f"Skipping {relative}: {e}")
                continue

            files.append(FileContext(relative, content, language_for(path)))
            if len(files) >= max_files:
                return files

    return files
