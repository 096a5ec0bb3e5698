"""领域层模型与协议。

包含：
- models: 统一的 ChatMessage / ChatRequest / ChatResult 模型。
- documents: Document / AgentLogEvent 与存储、删除回调等协作方接口。
- exceptions: 业务异常类型定义。
"""
