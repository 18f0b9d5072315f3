"""通话录音转写分析提示词

要求模型在一次回复中完成转写与分类，并以 JSON 返回。
"""

CALL_ANALYSIS_PROMPT = (
    "Transcribe and analyze this call. Return JSON: "
    '{"transcript":"...", '
    '"status":"sale|callback|not-interested|disqualified|pending", '
    '"sub_disposition":"...", '
    '"summary":"...", '
    '"reason":"...", '
    '"agent_response":"excellent|good|average|bad|very-bad", '
    '"customer_response":"excellent|good|average|bad|very-bad"}'
)

CALL_ANALYSIS_INSTRUCTION = "Transcribe and analyze:"
