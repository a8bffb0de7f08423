# 文件名: colbert_infer/infra/config/core_config.py

import ujson
import dataclasses
from dataclasses import dataclass, fields
from typing import Any

from colbert_infer.errors import ConfigurationError


@dataclass(frozen=True)
class DefaultVal:
    """一个简单的包装类，用于区分用户未设置的默认值和用户显式设置的值。"""
    val: Any


@dataclass
class CoreConfig:
    """
    配置类的核心基类。

    它使用 Python 的 dataclasses 特性来定义配置项，并提供了一系列
    方法来管理这些配置，例如：
    - 自动处理默认值。
    - 从关键字参数动态配置。
    - 打印帮助信息。
    - 导出配置为字典。
    """

    def __post_init__(self):
        """
        遍历所有的字段，将使用 DefaultVal 包装的默认值（或 None）
        替换为真正的默认值，并记录哪些字段已被显式赋值。
        """
        self.assigned = {}
        for field in fields(self):
            field_val = getattr(self, field.name)
            if isinstance(field_val, DefaultVal) or field_val is None:
                setattr(self, field.name, field.default.val)
            else:
                self.assigned[field.name] = True

    def configure(self, ignore_unrecognized=True, **kw_args):
        """
        使用关键字参数来配置对象的属性。

        Args:
            ignore_unrecognized (bool, optional): 如果为 True，则忽略无法识别的参数。
            **kw_args: 任意数量的关键字参数，用于设置配置项。

        Returns:
            set: 一个包含所有被忽略的参数名的集合。
        """
        ignored = set()
        for key, value in kw_args.items():
            if not self.set(key, value, ignore_unrecognized):
                ignored.add(key)
        return ignored

    def set(self, key, value, ignore_unrecognized=False):
        """设置单个配置项的值。只有 dataclass 字段才被视为可识别的配置项。"""
        if key in {field.name for field in fields(self)}:
            setattr(self, key, value)
            self.assigned[key] = True
            return True
        if not ignore_unrecognized:
            raise ConfigurationError(f"无法识别的配置项 `{key}` (对于类型 {type(self).__name__})")
        return False

    def help(self):
        """以格式化的 JSON 形式打印当前的所有配置项及其值。"""
        print(ujson.dumps(self.export(), indent=4))

    def export(self):
        """将当前配置导出为一个字典。"""
        return dataclasses.asdict(self)
