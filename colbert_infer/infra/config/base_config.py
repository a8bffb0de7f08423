# 文件名: colbert_infer/infra/config/base_config.py

import os
import ujson
import dataclasses

from dataclasses import dataclass

from colbert_infer.errors import UpstreamError
from .core_config import CoreConfig


ST_CONFIG_NAME = 'config_sentence_transformers.json'
SPECIAL_TOKENS_MAP_NAME = 'special_tokens_map.json'

# config_sentence_transformers.json 中与编码相关的键
ST_CONFIG_KEYS = ['query_prefix', 'document_prefix', 'do_query_expansion', 'attend_to_expansion_tokens',
                  'query_length', 'document_length']


def load_json(source, name='JSON'):
    """
    解析一个 JSON 文档。

    Args:
        source (str or bytes): JSON 文本或字节串。
        name (str): 文档名称，仅用于错误信息。
    """
    try:
        return ujson.loads(source)
    except (ValueError, TypeError) as e:
        raise UpstreamError('JSON Parsing', f"{name}: {e}") from e


def read_json(path):
    """从文件读取并解析一个 JSON 文档。"""
    try:
        with open(path, 'rb') as f:
            return load_json(f.read(), name=path)
    except OSError as e:
        raise UpstreamError('I/O', f"{path}: {e}") from e


@dataclass
class BaseConfig(CoreConfig):
    """
    继承自 CoreConfig，提供从不同来源（其他配置对象、JSON 文件、模型目录）加载配置的功能。
    """

    @classmethod
    def from_existing(cls, *sources):
        """
        通过合并一个或多个已存在的配置对象来创建一个新的配置对象。
        后面的配置源会覆盖前面配置源中的同名设置，且只合并被显式赋值过的字段。
        """
        kw_args = {}
        for source in sources:
            if source is None:
                continue
            local_kw_args = {k: v for k, v in dataclasses.asdict(source).items() if k in source.assigned}
            kw_args.update(local_kw_args)
        return cls(**kw_args)

    @classmethod
    def from_dict(cls, args):
        """从一个字典加载配置，忽略无法识别的键和值为 None 的键。"""
        obj = cls()
        ignored = obj.configure(ignore_unrecognized=True, **{k: v for k, v in args.items() if v is not None})
        return obj, ignored

    @classmethod
    def from_path(cls, name):
        """从一个 JSON 文件加载配置。"""
        args = read_json(name)
        if 'config' in args:
            args = args['config']
        return cls.from_dict(args)

    @classmethod
    def from_checkpoint_documents(cls, st_config=None, special_tokens_map=None):
        """
        从 sentence-transformers 风格的配置文档中提取编码配置。

        Args:
            st_config (dict, optional): config_sentence_transformers.json 的内容。
            special_tokens_map (dict, optional): special_tokens_map.json 的内容。
                'mask_token' 和 'pad_token' 可以是字符串，也可以是 {"content": "..."} 形式的字典。
        """
        obj = cls()

        for key in ST_CONFIG_KEYS:
            if st_config and st_config.get(key) is not None:
                obj.set(key, st_config[key])

        for key in ['mask_token', 'pad_token']:
            token = (special_tokens_map or {}).get(key)
            if isinstance(token, dict):
                token = token.get('content')
            if token is not None:
                obj.set(key, token)

        return obj

    @classmethod
    def load_from_checkpoint(cls, checkpoint_path):
        """
        从一个模型目录加载编码配置 (config_sentence_transformers.json 和 special_tokens_map.json)。
        如果两个文件都不存在，返回 None。
        """
        st_config_path = os.path.join(checkpoint_path, ST_CONFIG_NAME)
        special_tokens_path = os.path.join(checkpoint_path, SPECIAL_TOKENS_MAP_NAME)

        st_config = read_json(st_config_path) if os.path.exists(st_config_path) else None
        special_tokens_map = read_json(special_tokens_path) if os.path.exists(special_tokens_path) else None

        if st_config is None and special_tokens_map is None:
            return None

        return cls.from_checkpoint_documents(st_config, special_tokens_map)

    def save(self, path, overwrite=False):
        """将当前配置保存到 JSON 文件。"""
        assert overwrite or not os.path.exists(path), f"配置文件 {path} 已存在。"
        with open(path, 'w') as f:
            f.write(ujson.dumps(self.export(), indent=4) + '\n')
