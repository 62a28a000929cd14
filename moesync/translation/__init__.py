"""
Translation — Editors and the pipelines that chain them between project spaces
"""

from .editors import (
    EDITOR_TYPES, Editor, InverseEditor, IdentityEditor, RenamingEditor,
    FileFilterEditor, ShellEditor, PatchingEditor, create_editor,
)
from .pipeline import (
    TranslationPath, TranslationStep, TranslationPipeline, InverseTranslationPipeline,
)

__all__ = [
    'EDITOR_TYPES', 'Editor', 'InverseEditor', 'IdentityEditor', 'RenamingEditor',
    'FileFilterEditor', 'ShellEditor', 'PatchingEditor', 'create_editor',
    'TranslationPath', 'TranslationStep', 'TranslationPipeline', 'InverseTranslationPipeline',
]
