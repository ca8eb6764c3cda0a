"""
数据流分层架构
  Layer 1 – Acquisition  : 上游提供商（图表 / 大模型分析）
  Layer 2 – Cache        : 分析结果缓存（内存 / Redis）
  Layer 3 – Processing   : K 线整形（parsing 模块负责模型输出解析）
"""
