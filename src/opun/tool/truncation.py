"""Output truncation — keep assistant replies returned by tools bounded."""

from __future__ import annotations

import os
import tempfile

MAX_LINES = 2000
MAX_BYTES = 50 * 1024  # 50KB
OUTPUT_DIR = "~/.opun/tool-output"


def truncate_output(
    text: str,
    max_lines: int = MAX_LINES,
    max_bytes: int = MAX_BYTES,
    save_full: bool = True,
    output_dir: str = OUTPUT_DIR,
) -> str:
    """Trim ``text`` to the last ``max_lines`` lines and ``max_bytes`` bytes.

    Assistant replies end with the answer, so the tail is kept. When
    ``save_full`` is set the untrimmed text goes to a file under
    ``output_dir`` and the notice says where.
    """
    if not text:
        return text

    lines = text.split("\n")
    byte_count = len(text.encode("utf-8", errors="replace"))
    if len(lines) <= max_lines and byte_count <= max_bytes:
        return text

    full_path = _save_full(text, output_dir) if save_full else None

    skipped_lines = max(0, len(lines) - max_lines)
    kept = "\n".join(lines[skipped_lines:])

    kept_bytes = kept.encode("utf-8", errors="replace")
    skipped_bytes = 0
    if len(kept_bytes) > max_bytes:
        skipped_bytes = len(kept_bytes) - max_bytes
        # Cut from the front at a UTF-8 boundary
        kept = kept_bytes[-max_bytes:].decode("utf-8", errors="ignore")

    notice = []
    if skipped_lines:
        notice.append(f"{skipped_lines} lines skipped")
    if skipped_bytes:
        notice.append(f"{skipped_bytes} bytes skipped")
    header = (
        f"[Output truncated: {', '.join(notice)}. "
        f"Total: {len(lines)} lines, {byte_count} bytes]"
    )
    if full_path:
        header += f"\n[Full output saved to: {full_path}]"
    return f"{header}\n{kept}"


def _save_full(text: str, output_dir: str) -> str:
    directory = os.path.expanduser(output_dir)
    os.makedirs(directory, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix="opun-", suffix=".txt", dir=directory)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(text)
    return path
