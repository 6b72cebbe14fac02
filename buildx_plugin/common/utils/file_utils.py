from pathlib import Path
from typing import Optional, Union
import shutil
import tempfile
import os

from buildx_plugin.common.config.logging_config import get_logger


logger = get_logger(__name__)


def safe_read_file(
    file_path: Union[str, Path],
    encoding: str = "utf-8",
    default: Optional[str] = None,
) -> Optional[str]:
    file_path = Path(file_path)

    try:
        if not file_path.exists():
            logger.debug(f"File does not exist: {file_path}")
            return default

        if not file_path.is_file():
            logger.warning(f"Path is not a file: {file_path}")
            return default

        with open(file_path, "r", encoding=encoding) as f:
            return f.read()
    except PermissionError:
        logger.error(f"Permission denied reading file: {file_path}")
        return default
    except UnicodeDecodeError:
        logger.error(f"Failed to decode file with encoding {encoding}: {file_path}")
        return default
    except OSError as e:
        logger.error(f"Unexpected error reading file {file_path}: {e}")
        return default


def safe_read_binary(
    file_path: Union[str, Path],
    default: Optional[bytes] = None,
) -> Optional[bytes]:
    file_path = Path(file_path)

    try:
        if not file_path.is_file():
            return default

        with open(file_path, "rb") as f:
            return f.read()
    except OSError as e:
        logger.error(f"Error reading binary file {file_path}: {e}")
        return default


def ensure_directory(
    directory: Union[str, Path],
    mode: int = 0o755,
) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True, mode=mode)
    return directory


def write_file(
    file_path: Union[str, Path],
    content: Union[str, bytes],
    encoding: str = "utf-8",
    mode: Optional[int] = None,
    create_dirs: bool = True,
) -> Path:
    """Atomically replace ``file_path`` with ``content``.

    Raises ``OSError`` on failure; callers decide whether that is fatal.
    """
    file_path = Path(file_path)

    if create_dirs:
        file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(
        dir=file_path.parent,
        prefix=f".{file_path.name}.",
        suffix=".tmp"
    )

    try:
        if isinstance(content, str):
            with os.fdopen(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with os.fdopen(temp_fd, "wb") as f:
                f.write(content)

        if mode is not None:
            os.chmod(temp_path, mode)

        shutil.move(temp_path, file_path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise

    logger.debug(f"Wrote {file_path}")
    return file_path
