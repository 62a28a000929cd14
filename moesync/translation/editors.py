"""
Editors — Named transformations applied to a codebase

An editor takes a codebase and returns one with the same project space.
Editors that change nothing hand back their input unchanged, which lets the
pipeline and the engine tell a no-op apart from a rewrite.

Each editor declares the expression options it accepts; anything else in
the caller's options is filtered out before edit() sees it.

Types:
- identity: no change
- renamer: move files by path prefix (or regex) mappings
- filter: drop files matching regexes
- shell: run a command over a copy of the tree
- patcher: apply a patch file named by the 'file' option

Forward editors may provide an inverse for inverse translators.
"""

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ..core.codebase import Codebase
from ..core.filesystem import copy_file, copy_tree
from ..errors import CodebaseCreationError, InvalidProject, unknown_name_message

logger = logging.getLogger(__name__)


class Editor:
    """Base class for forward editors."""

    type_name = ""
    accepted_options: FrozenSet[str] = frozenset()

    def __init__(self, name: str, settings: Optional[Dict[str, Any]] = None):
        self.name = name
        self.settings = dict(settings or {})

    def filter_options(self, options: Dict[str, str]) -> Dict[str, str]:
        return {k: v for k, v in options.items() if k in self.accepted_options}

    def edit(self, codebase: Codebase, options: Dict[str, str], context) -> Codebase:
        raise NotImplementedError

    def inverse(self) -> 'InverseEditor':
        raise InvalidProject(f"Editor '{self.name}' ({self.type_name}) has no inverse")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class InverseEditor:
    """
    Undoes a forward editor's change.

    reference_from is a codebase in the editor's output space before the
    forward edit (e.g. the internal tree); reference_to is its forward
    translation. Either may be None when the caller supplied no reference.
    """

    accepted_options: FrozenSet[str] = frozenset()

    def __init__(self, name: str):
        self.name = name

    def filter_options(self, options: Dict[str, str]) -> Dict[str, str]:
        return {k: v for k, v in options.items() if k in self.accepted_options}

    def inverse_edit(self, codebase: Codebase, reference_from: Optional[Codebase],
                     reference_to: Optional[Codebase], options: Dict[str, str], context) -> Codebase:
        raise NotImplementedError


# =============================================================================
# Identity
# =============================================================================

class IdentityEditor(Editor):
    type_name = "identity"

    def edit(self, codebase, options, context):
        return codebase

    def inverse(self):
        return InverseIdentityEditor(self.name)


class InverseIdentityEditor(InverseEditor):
    def inverse_edit(self, codebase, reference_from, reference_to, options, context):
        return codebase


# =============================================================================
# Renamer
# =============================================================================

class RenamingEditor(Editor):
    """
    Moves files according to 'mappings' (old prefix -> new prefix).

    The longest matching prefix wins. With 'use_regex', mappings are regexes
    applied in declaration order, first match wins. A file no mapping
    matches is an error unless the 'strict' option is "false".
    """

    type_name = "renamer"
    accepted_options = frozenset({"strict"})

    def __init__(self, name, settings=None):
        super().__init__(name, settings)
        mappings = self.settings.get("mappings")
        if not isinstance(mappings, dict) or not mappings:
            raise InvalidProject(f"Editor '{name}' (renamer) needs a non-empty 'mappings' table")
        self.mappings: List[Tuple[str, str]] = [(str(k), str(v)) for k, v in mappings.items()]
        self.use_regex = bool(self.settings.get("use_regex", False))
        if self.use_regex:
            try:
                self._patterns = [(re.compile(k), v) for k, v in self.mappings]
            except re.error as e:
                raise InvalidProject(f"Editor '{name}' has an invalid mapping regex: {e}")
        else:
            self.mappings.sort(key=lambda pair: len(pair[0]), reverse=True)

    def rename(self, relative: str) -> Optional[str]:
        if self.use_regex:
            for pattern, replacement in self._patterns:
                if pattern.search(relative):
                    return pattern.sub(replacement, relative, count=1)
            return None
        for prefix, replacement in self.mappings:
            if relative.startswith(prefix):
                return replacement + relative[len(prefix):]
        return None

    def edit(self, codebase, options, context):
        strict = options.get("strict", "true").lower() != "false"
        return _rename_tree(codebase, self.rename, strict, self.name, context)

    def inverse(self):
        if self.use_regex:
            raise InvalidProject(f"Editor '{self.name}' uses regex mappings and cannot be inverted")
        return InverseRenamingEditor(self.name, self.mappings)


class InverseRenamingEditor(InverseEditor):
    accepted_options = frozenset({"strict"})

    def __init__(self, name: str, mappings: List[Tuple[str, str]]):
        super().__init__(name)
        reversed_pairs = [(new, old) for old, new in mappings]
        self.mappings = sorted(reversed_pairs, key=lambda pair: len(pair[0]), reverse=True)

    def rename(self, relative: str) -> Optional[str]:
        for prefix, replacement in self.mappings:
            if relative.startswith(prefix):
                return replacement + relative[len(prefix):]
        return None

    def inverse_edit(self, codebase, reference_from, reference_to, options, context):
        strict = options.get("strict", "true").lower() != "false"
        return _rename_tree(codebase, self.rename, strict, self.name, context)


def _rename_tree(codebase: Codebase, rename, strict: bool, editor_name: str, context) -> Codebase:
    moves: Dict[str, str] = {}
    targets = set()
    for relative in codebase.files():
        target = rename(relative)
        if target is None:
            if strict:
                raise CodebaseCreationError(
                    f"Editor '{editor_name}': no mapping applies to {relative}")
            target = relative
        if target in targets:
            raise CodebaseCreationError(
                f"Editor '{editor_name}': more than one file renamed to {target}")
        targets.add(target)
        moves[relative] = target

    if all(src == dest for src, dest in moves.items()):
        return codebase

    output = context.filesystem.temp_dir(f"rename-{editor_name}")
    for src, dest in moves.items():
        copy_file(codebase.file(src), output / dest)
    return Codebase(output, codebase.project_space, codebase.expression)


# =============================================================================
# Filter
# =============================================================================

class FileFilterEditor(Editor):
    """Drops files matching any of 'ignore_file_res' (plus the 'ignore_file_re' option)."""

    type_name = "filter"
    accepted_options = frozenset({"ignore_file_re"})

    def __init__(self, name, settings=None):
        super().__init__(name, settings)
        self.patterns = _compile_all(name, self.settings.get("ignore_file_res", []))

    def _patterns_for(self, options) -> List[re.Pattern]:
        extra = options.get("ignore_file_re")
        return self.patterns + (_compile_all(self.name, [extra]) if extra else [])

    def edit(self, codebase, options, context):
        patterns = self._patterns_for(options)
        files = codebase.files()
        kept = [f for f in files if not any(p.search(f) for p in patterns)]
        if len(kept) == len(files):
            return codebase

        output = context.filesystem.temp_dir(f"filter-{self.name}")
        for relative in kept:
            copy_file(codebase.file(relative), output / relative)
        logger.info("Editor %r dropped %d file(s)", self.name, len(files) - len(kept))
        return Codebase(output, codebase.project_space, codebase.expression)

    def inverse(self):
        return InverseFileFilterEditor(self.name, self.patterns)


class InverseFileFilterEditor(InverseEditor):
    """Restores the files a filter dropped, taken from the reference from-codebase."""

    def __init__(self, name: str, patterns: List[re.Pattern]):
        super().__init__(name)
        self.patterns = patterns

    def inverse_edit(self, codebase, reference_from, reference_to, options, context):
        if reference_from is None:
            logger.warning("Editor %r: no reference codebase, filtered files are not restored", self.name)
            return codebase

        restored = [f for f in reference_from.files() if any(p.search(f) for p in self.patterns)]
        if not restored:
            return codebase

        output = context.filesystem.temp_dir(f"unfilter-{self.name}")
        copy_tree(codebase.path, output)
        for relative in restored:
            copy_file(reference_from.file(relative), output / relative)
        return Codebase(output, codebase.project_space, codebase.expression)


# =============================================================================
# Shell and patch
# =============================================================================

class ShellEditor(Editor):
    """Runs 'command' with bash inside a copy of the codebase."""

    type_name = "shell"
    accepted_options = frozenset({"args"})

    def __init__(self, name, settings=None):
        super().__init__(name, settings)
        self.command = self.settings.get("command")
        if not self.command:
            raise InvalidProject(f"Editor '{name}' (shell) needs a 'command'")

    def edit(self, codebase, options, context):
        output = context.filesystem.temp_dir(f"shell-{self.name}")
        copy_tree(codebase.path, output)
        command = self.command
        if options.get("args"):
            command = f"{command} {options['args']}"
        env = dict(os.environ, MOESYNC_CODEBASE=str(output))
        _run(["bash", "-c", command], output, env, self.name)
        return Codebase(output, codebase.project_space, codebase.expression)


class PatchingEditor(Editor):
    """Applies the patch named by the 'file' option; without one, no change."""

    type_name = "patcher"
    accepted_options = frozenset({"file"})

    def edit(self, codebase, options, context):
        patch_file = options.get("file")
        if not patch_file:
            return codebase
        patch_path = Path(patch_file)
        if not patch_path.is_file():
            raise CodebaseCreationError(f"Editor '{self.name}': patch file {patch_file} not found")

        output = context.filesystem.temp_dir(f"patch-{self.name}")
        copy_tree(codebase.path, output)
        _run(["patch", "-p0", "--batch", "--input", str(patch_path.resolve())], output, None, self.name)
        return Codebase(output, codebase.project_space, codebase.expression)


def _run(args: List[str], cwd: Path, env, editor_name: str) -> None:
    logger.info("Editor %r running %s", editor_name, " ".join(args))
    try:
        result = subprocess.run(args, cwd=cwd, env=env, capture_output=True, text=True)
    except OSError as e:
        raise CodebaseCreationError(f"Editor '{editor_name}' could not run {args[0]}: {e}")
    if result.returncode != 0:
        raise CodebaseCreationError(
            f"Editor '{editor_name}' failed with exit status {result.returncode}: "
            f"{result.stderr.strip() or result.stdout.strip()}")


def _compile_all(editor_name: str, patterns) -> List[re.Pattern]:
    try:
        return [re.compile(p) for p in patterns]
    except re.error as e:
        raise InvalidProject(f"Editor '{editor_name}' has an invalid regex: {e}")


# =============================================================================
# Registry
# =============================================================================

EDITOR_TYPES = {
    cls.type_name: cls
    for cls in (IdentityEditor, RenamingEditor, FileFilterEditor, ShellEditor, PatchingEditor)
}


def create_editor(name: str, editor_type: str, settings: Optional[Dict[str, Any]] = None) -> Editor:
    """Build an editor from its configured type and settings."""
    cls = EDITOR_TYPES.get(editor_type)
    if cls is None:
        raise InvalidProject(unknown_name_message("editor type", editor_type, EDITOR_TYPES))
    return cls(name, settings)
