# 文件名: colbert_infer/modeling/__init__.py
# 作用:
# 这是 modeling 子包的初始化文件。
# 它导入了查询/文档分词器以及 TokenBatch，
# 使得这些类可以作为 colbert_infer.modeling 模块的一部分被外部调用。
from colbert_infer.modeling.tokenization import *
