"""
Differ — Compare two codebases file by file

Used by diff_codebases and by migration checks. Contents are compared by
xxhash digest; unified() renders a textual patch with difflib.
"""

import difflib
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import xxhash

from .codebase import Codebase
from .filesystem import is_executable


@dataclass
class CodebaseDiff:
    """Differences between two codebases (a = before, b = after)."""
    a: Codebase
    b: Codebase
    only_in_a: List[str] = field(default_factory=list)
    only_in_b: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    executable_changed: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.only_in_a or self.only_in_b or self.modified or self.executable_changed)

    @property
    def summary(self) -> str:
        parts = []
        if self.only_in_b:
            parts.append(f"+{len(self.only_in_b)} added")
        if self.modified:
            parts.append(f"~{len(self.modified)} modified")
        if self.only_in_a:
            parts.append(f"-{len(self.only_in_a)} deleted")
        if self.executable_changed:
            parts.append(f"*{len(self.executable_changed)} mode changed")
        return ", ".join(parts) if parts else "no differences"

    def unified(self) -> str:
        """Render the difference as a unified diff."""
        chunks: List[str] = []
        for relative in sorted(set(self.only_in_a + self.only_in_b + self.modified)):
            before = _read_lines(self.a, relative) if relative not in self.only_in_b else []
            after = _read_lines(self.b, relative) if relative not in self.only_in_a else []
            if before is None or after is None:
                chunks.append(f"Binary files a/{relative} and b/{relative} differ\n")
                continue
            chunks.extend(difflib.unified_diff(
                before, after,
                fromfile=f"a/{relative}" if relative not in self.only_in_b else "/dev/null",
                tofile=f"b/{relative}" if relative not in self.only_in_a else "/dev/null",
            ))
        for relative in self.executable_changed:
            mode = "755" if is_executable(self.b.file(relative)) else "644"
            chunks.append(f"mode change {relative} -> {mode}\n")
        return "".join(chunks)


def diff_codebases(a: Codebase, b: Codebase, ignore_file_res: Iterable[str] = ()) -> CodebaseDiff:
    """Compare two codebases, skipping files matched by any of ignore_file_res."""
    ignored = [re.compile(pattern) for pattern in ignore_file_res]

    def wanted(relative: str) -> bool:
        return not any(p.search(relative) for p in ignored)

    files_a = {f for f in a.files() if wanted(f)}
    files_b = {f for f in b.files() if wanted(f)}

    diff = CodebaseDiff(
        a=a, b=b,
        only_in_a=sorted(files_a - files_b),
        only_in_b=sorted(files_b - files_a),
    )
    for relative in sorted(files_a & files_b):
        if _digest(a, relative) != _digest(b, relative):
            diff.modified.append(relative)
        elif is_executable(a.file(relative)) != is_executable(b.file(relative)):
            diff.executable_changed.append(relative)
    return diff


def _digest(codebase: Codebase, relative: str) -> str:
    return xxhash.xxh64(codebase.file(relative).read_bytes()).hexdigest()


def _read_lines(codebase: Codebase, relative: str) -> Optional[List[str]]:
    try:
        return codebase.file(relative).read_text(encoding="utf-8").splitlines(keepends=True)
    except UnicodeDecodeError:
        return None
