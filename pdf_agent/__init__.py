"""PDF Agent 顶层包。

该包提供对话式 PDF 编辑 Agent 的核心实现，
包括配置加载、领域模型、Provider 适配（Anthropic / OpenAI 兼容）、
PDF 工具集、空白区域检测、单轮 Agent 循环与会话存储等能力。
"""

from pdf_agent.agents.pdf_agent import AgentTurnResult, ProviderSelection, run_agent_turn

__all__ = ["AgentTurnResult", "ProviderSelection", "run_agent_turn"]
