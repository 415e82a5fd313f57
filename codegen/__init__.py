"""
codegen package

Prompt-to-program pipeline: Gemini client, background dispatch, and
response parsing/validation.
"""

from codegen.client import GeminiCodegenClient
from codegen.parser import CANONICAL_PARAMETERS, GeneratedProgram, ResponseParser
from codegen.worker import CodegenWorker, ThreadedDispatcher

__all__ = [
    "CANONICAL_PARAMETERS",
    "CodegenWorker",
    "GeminiCodegenClient",
    "GeneratedProgram",
    "ResponseParser",
    "ThreadedDispatcher",
]
