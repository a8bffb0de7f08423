# 文件名: colbert_infer/infra/config/settings.py

import torch

from dataclasses import dataclass

from .core_config import DefaultVal


@dataclass
class RunSettings:
    """
    定义与单次编码/评分调用相关的运行环境设置。
    """

    # 每个分块（chunk）的最大句子数，最后一个分块可能更小
    batch_size: int = DefaultVal(32)

    # 模型所在的设备，例如 'cpu' 或 'cuda:0'。None 表示有 GPU 时用 GPU，否则用 CPU。
    device: str = DefaultVal(None)

    # CPU 上并行处理分块的线程数。None 表示使用 torch.get_num_threads()，1 表示顺序处理。
    num_workers: int = DefaultVal(None)

    # 是否在 CUDA 上使用自动混合精度 (AMP)
    amp: bool = DefaultVal(True)

    # 是否打印逐次调用的调试信息
    verbose: bool = DefaultVal(False)

    @property
    def device_(self):
        """解析 'device' 字段，返回一个 torch.device。"""
        if self.device is None:
            return torch.device('cuda' if torch.cuda.is_available() else 'cpu')
        return torch.device(self.device)

    @property
    def num_workers_(self):
        return self.num_workers or torch.get_num_threads()


@dataclass
class DocSettings:
    """
    与文档（document）处理相关的设置。
    """
    # 拼接在每个文档文本前面的前缀 (作为文本的一部分参与分词)
    document_prefix: str = DefaultVal('[D]')
    # 文档的最大长度（以 token 计）。超过此长度的将被截断。
    document_length: int = DefaultVal(180)
    # 填充文档使用的 pad token。None 表示依次尝试分词器自己的 pad token、词汇表中的 '[PAD]'、ID 0
    pad_token: str = DefaultVal(None)


@dataclass
class QuerySettings:
    """
    与查询（query）处理相关的设置。
    """
    # 拼接在每个查询文本前面的前缀
    query_prefix: str = DefaultVal('[Q]')
    # 查询的固定长度（以 token 计），不足的部分用 mask_token 填充
    query_length: int = DefaultVal(32)
    # 用于填充查询的 mask token，必须存在于分词器的词汇表中
    mask_token: str = DefaultVal('[MASK]')
    # 是否启用查询扩展：mask token 位置的向量作为“扩展”向量参与打分
    do_query_expansion: bool = DefaultVal(True)
    # 是否让模型在注意力机制中关注 mask token (扩展 token)
    attend_to_expansion_tokens: bool = DefaultVal(False)

    @property
    def attend_to_expansion_tokens_(self):
        """没有查询扩展时，关注扩展 token 没有意义，因此总是 False。"""
        return self.do_query_expansion and self.attend_to_expansion_tokens
