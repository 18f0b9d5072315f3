"""拨号器通话录音同步与 AI 分析后端"""
