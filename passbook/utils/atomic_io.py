"""
Atomic file writes.

Publish rule:
1. Write to a temp path in the same directory
2. Flush + fsync
3. Rename temp -> final (the publish boundary)

The final path either holds the complete new content or its previous
content. Partial writes only ever affect the temp file.
"""

import os
from pathlib import Path
from typing import Union


def atomic_write_text(
    final_path: Union[str, Path],
    text: str,
    encoding: str = "utf-8",
    temp_suffix: str = ".tmp",
) -> Path:
    """
    Atomically write text to a file, creating parent directories.

    Newlines are written exactly as given (no platform translation).

    Raises:
        OSError: if directory creation, write, or rename fails
    """
    final_path = Path(final_path)
    temp_path = final_path.with_suffix(final_path.suffix + temp_suffix)
    final_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with temp_path.open("w", encoding=encoding, newline="") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, final_path)
    except OSError:
        if temp_path.is_file():
            temp_path.unlink()
        raise

    return final_path
