"""
股票分析代理服务
为单页图表 UI 提供行情图表代理与 AI 分析接口

架构分层：
  数据获取层 (Acquisition)  → 图表数据提供商 / 大模型分析提供商
  缓存层     (Cache)        → 分析结果短期缓存（内存 / Redis）
  处理层     (Processing)   → 模型文本解析、K 线整形
"""

__version__ = "1.0.0"
