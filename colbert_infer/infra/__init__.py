# 文件名: colbert_infer/infra/__init__.py
# 作用:
# 这是 infra 子包的初始化文件。
# 使得配置类可以方便地通过 `from colbert_infer.infra import ColBERTConfig` 来访问。

from .config import *
