# 文件名: colbert_infer/infra/config/config.py

from dataclasses import dataclass
from .base_config import BaseConfig
from .settings import *


@dataclass
class ColBERTConfig(RunSettings, DocSettings, QuerySettings, BaseConfig):
    """
    colbert_infer 的主配置类。

    它通过多重继承，将所有不同类别的设置 (Run, Doc, Query) 组合到一个单一的配置对象中，
    同时继承了 BaseConfig 的配置加载与合并能力。
    """
    pass
