# 文件名: colbert_infer/data/__init__.py
# 作用:
# 这是 data 子包的初始化文件。
# 它导入了 JSON 序列化边界上使用的所有记录类。

from .records import *
