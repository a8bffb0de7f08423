# 文件名: colbert_infer/infra/config/__init__.py
# 作用:
# 这是 config 子包的初始化文件。
# 它导入了该目录下的所有主要配置类，
# 使得这些类可以作为 colbert_infer.infra.config 模块的一部分被外部调用。

from .config import *
from .settings import *
from .base_config import load_json, read_json
