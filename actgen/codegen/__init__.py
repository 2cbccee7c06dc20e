# コード生成
# Action 配列から Playwright スクリプトを生成するエミッタ群とオーケストレータ

from .actions import create_action_registry
from .asserts import create_assert_registry
from .orchestrator import CompileResult, Diagnostic, ScriptCompiler
from .registry import EmitContext, EmitterInfo, EmitterRegistry, build_step

__all__ = [
    "CompileResult",
    "Diagnostic",
    "EmitContext",
    "EmitterInfo",
    "EmitterRegistry",
    "ScriptCompiler",
    "build_step",
    "create_action_registry",
    "create_assert_registry",
]
