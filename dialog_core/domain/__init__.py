"""领域层模型与协议。

包含：
- models: Message / ModelRequest 模型。
- conversation: 只追加的对话记录 Conversation。
- exceptions: 业务异常类型定义。
"""
