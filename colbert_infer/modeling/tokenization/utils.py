# 文件名: colbert_infer/modeling/tokenization/utils.py

import threading

from dataclasses import dataclass
from typing import NamedTuple

import torch

from colbert_infer.errors import OperationError, UpstreamError
from colbert_infer.utils.utils import batch


class TokenBatch(NamedTuple):
    """一个分块的分词结果。三个张量形状相同，均为 (batch, seq_len)。"""
    token_ids: torch.Tensor
    attention_mask: torch.Tensor
    token_type_ids: torch.Tensor


@dataclass(frozen=True)
class TokenizationParams:
    """
    单次分词调用的参数。每次调用都重新构造一个不可变的实例，
    填充由 tensorize_texts 按这些参数完成，不依赖也不修改分词器自己的 pad token。

    Attributes:
        prefix (str): 拼接在每个文本前面的前缀。
        max_length (int): 截断长度；对于 'max_length' 填充也是填充的目标长度。
        padding (str): 'max_length' (固定长度) 或 'longest' (批次内最长)。
        pad_token_id (int): 填充位置使用的 token ID (查询为 mask token，文档为 pad token)。
        attend_to_padding (bool): 如果为 True，将 attention mask 全部置为 1。
    """
    prefix: str
    max_length: int
    padding: str
    pad_token_id: int
    attend_to_padding: bool = False


# HF 快速分词器在每次调用时会把截断/填充参数写入共享的底层 Rust 分词器，因此并发调用需要串行化
_TOKENIZER_LOCK = threading.Lock()


def encode_texts(tok, batch_text, params: TokenizationParams):
    """
    按照 params 调用 HF 快速分词器，只做截断不做填充。
    返回 BatchEncoding，其中每个字段是长度不一的 Python 列表。
    """
    if len(batch_text) == 0:
        raise OperationError("Input sentences cannot be empty.")

    batch_text = [params.prefix + x for x in batch_text]

    try:
        with _TOKENIZER_LOCK:
            obj = tok(
                batch_text,
                padding=False,
                truncation=True,
                max_length=params.max_length,
                return_token_type_ids=True,
                return_attention_mask=True,
            )
    except Exception as e:
        raise UpstreamError('Tokenizer', str(e)) from e

    return obj


def tensorize_texts(tok, batch_text, params: TokenizationParams):
    """将一批文本转换为一个 TokenBatch，右侧用 params.pad_token_id 填充。"""
    obj = encode_texts(tok, batch_text, params)
    rows, type_rows = obj['input_ids'], obj['token_type_ids']

    if params.padding == 'max_length':
        seq_len = params.max_length
    else:
        seq_len = max(len(row) for row in rows)

    ids = torch.full((len(rows), seq_len), params.pad_token_id, dtype=torch.long)
    mask = torch.zeros((len(rows), seq_len), dtype=torch.long)
    type_ids = torch.zeros((len(rows), seq_len), dtype=torch.long)

    for idx, (row, type_row) in enumerate(zip(rows, type_rows)):
        ids[idx, :len(row)] = torch.tensor(row, dtype=torch.long)
        mask[idx, :len(row)] = 1
        type_ids[idx, :len(type_row)] = torch.tensor(type_row, dtype=torch.long)

    if params.attend_to_padding:
        mask.fill_(1)

    return TokenBatch(ids, mask, type_ids)


def ids_to_tokens(tok, batch_text, params: TokenizationParams):
    """返回与 tensorize_texts 相同编码下的 token 字符串，用于展示。"""
    ids = tensorize_texts(tok, batch_text, params).token_ids
    return [tok.convert_ids_to_tokens(row) for row in ids.tolist()]


def _split_into_batches(batch_text, bsize):
    """将文本列表按顺序切分为多个大小不超过 bsize 的分块。"""
    return list(batch(batch_text, bsize))
