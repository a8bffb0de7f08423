# 文件名: colbert_infer/errors.py

class ColBERTError(Exception):
    """colbert_infer 中所有异常的基类。"""

    prefix = None

    def __init__(self, message):
        self.message = message
        super().__init__(f"{self.prefix}: {message}" if self.prefix else message)


class ConfigurationError(ColBERTError):
    """
    构造模型时的配置错误，例如:
    - config.json 中缺少或不支持的 'architectures'
    - 分词器词汇表中不存在 mask token
    - Dense 配置缺少 'in_features' / 'out_features'

    这类错误总是在构造阶段抛出，不会重试。
    """
    prefix = "Configuration Error"


class OperationError(ColBERTError):
    """单次调用中的操作错误 (空输入、形状不满足约束等)，不返回任何部分结果。"""
    prefix = "Operation Error"


class UpstreamError(ColBERTError):
    """
    包装来自外部组件 (分词器、前向传播、safetensors、JSON、Hugging Face Hub) 的异常。
    原始异常通过 `raise ... from e` 保留在 __cause__ 中。
    """

    def __init__(self, source, message):
        self.source = source
        super().__init__(f"{source} Error: {message}")
