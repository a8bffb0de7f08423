# 文件名: colbert_infer/__init__.py
# 作用:
# 这是一个顶层的包初始化文件。
# 它将 colbert_infer 包中的主要类和函数（Checkpoint、配置、评分与池化函数、异常）
# 导入到包的命名空间中，使得用户可以直接从 colbert_infer 导入这些核心功能。

from .infra.config import ColBERTConfig
from .errors import ColBERTError, ConfigurationError, OperationError, UpstreamError
from .modeling.checkpoint import Checkpoint
from .modeling.colbert import colbert_score, colbert_raw_score
from .modeling.pooling import hierarchical_pooling
