"""
错误类型。

传播约定：
- `ParseError` 只影响单个文件，由遍历目录的调用方记录并跳过
- 其它错误一律原样抛给上游（不吞、不降级为默认值）
"""

from __future__ import annotations


class DocAssistError(RuntimeError):
    """所有领域错误的基类。"""

    pass


class ParseError(DocAssistError):
    """源文件无法解析（语法错误或无法读取）。"""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class EmbeddingError(DocAssistError):
    """embedding 调用失败，或返回的维度/数量不符合预期。"""

    pass


class FormatError(DocAssistError):
    """向量编解码失败（数据损坏）。"""

    pass


class StoreError(DocAssistError):
    """schema / 连接 / 事务失败。"""

    pass


class RelevanceError(DocAssistError):
    """检索结果中没有任何 chunk 超过相关度阈值。"""

    pass


class GenerationError(DocAssistError):
    """文本生成调用失败，或返回空内容。"""

    pass


class CloneError(DocAssistError):
    """远程仓库克隆失败（git 不可用、网络或仓库不存在）。"""

    pass
