"""AI 提示词模块"""

from callsync.clients.ai.prompts.call_analysis import CALL_ANALYSIS_INSTRUCTION, CALL_ANALYSIS_PROMPT

__all__ = [
    "CALL_ANALYSIS_INSTRUCTION",
    "CALL_ANALYSIS_PROMPT",
]
