"""
chatflow - 对话流程编排与预览服务
"""

__version__ = "0.1.0"
