# 文件名: colbert_infer/modeling/colbert.py

import torch

from colbert_infer.errors import OperationError
from colbert_infer.modeling.base_colbert import BaseColBERT


class ColBERT(BaseColBERT):
    """
    此类处理 ColBERT 中的基本编码和评分操作：
    编码器前向传播 -> 线性投影 -> 按输入类型 (查询/文档) 进行后处理。
    """

    def query(self, token_ids, attention_mask, token_type_ids):
        """
        将查询的 token IDs 编码为 ColBERT 嵌入 (Q 向量)。

        启用查询扩展时，mask token 位置的向量是模型学到的“扩展”向量，
        因此不做过滤，只对每个向量做 L2 归一化，输出形状为 (B, query_length, dim)。
        否则与文档的处理方式相同。
        """
        Q = self._encode(token_ids, attention_mask, token_type_ids)

        if self.colbert_config.do_query_expansion:
            return normalize_l2(Q)

        return filter_normalize_and_pad(Q, attention_mask)

    def doc(self, token_ids, attention_mask, token_type_ids):
        """
        将文档的 token IDs 编码为 ColBERT 嵌入 (D 向量)，形状为 (B, max_len, dim)，
        其中 max_len 是该批次中 attention_mask 为 1 的 token 数的最大值。
        """
        D = self._encode(token_ids, attention_mask, token_type_ids)
        return filter_normalize_and_pad(D, attention_mask)

    def _encode(self, token_ids, attention_mask, token_type_ids):
        device = self.device
        token_ids, attention_mask, token_type_ids = token_ids.to(device), attention_mask.to(device), \
            token_type_ids.to(device)

        # 1. 通过基础编码器  2. 通过线性层 (降维)
        return self.model(token_ids, attention_mask, token_type_ids)

    def score(self, Q, D):
        """计算查询 (Q) 和文档 (D) 之间的 MaxSim 得分，返回 (num_queries, num_docs)。"""
        return colbert_score(Q, D)


def normalize_l2(embeddings):
    """
    对最后一个维度做 L2 归一化。全零向量保持为全零 (0/0 视为 0)。
    """
    return torch.nn.functional.normalize(embeddings, p=2, dim=-1)


def filter_normalize_and_pad(embeddings, attention_mask):
    """
    对批次中的每个样本:
      1. 只保留 attention_mask == 1 的位置；
      2. 对保留下来的向量做 L2 归一化；
      3. 如果没有任何位置被保留，使用一个全零向量代替，保证样本不为空；
    最后用全零向量把所有样本填充到批次内的最大保留长度，并堆叠成 (B, max_len, dim)。

    注意: 填充的全零行与任何查询向量的相似度都是 0。如果某个查询 token 与文档中所有真实
    token 的相似度都是负数，MaxSim 会选中填充行 (得分 0)。这是已知的近似，不做特殊处理。
    """
    if embeddings.dim() != 3:
        raise OperationError(f"Expected embeddings of shape (batch, seq_len, dim), got {tuple(embeddings.size())}")

    if embeddings.size(0) == 0:
        raise OperationError("Cannot post-process an empty batch.")

    if attention_mask.size() != embeddings.size()[:2]:
        raise OperationError(f"Attention mask {tuple(attention_mask.size())} does not match "
                             f"embeddings {tuple(embeddings.size())}")

    dim = embeddings.size(-1)
    mask = attention_mask.to(embeddings.device) == 1

    D = [normalize_l2(d[mask[idx]]) for idx, d in enumerate(embeddings)]
    D = [d if d.size(0) > 0 else embeddings.new_zeros(1, dim) for d in D]

    return torch.nn.utils.rnn.pad_sequence(D, batch_first=True, padding_value=0.0)


def _check_shapes(Q, D):
    if Q.dim() != 3 or D.dim() != 3:
        raise OperationError(f"Expected 3D embeddings, got Q {tuple(Q.size())} and D {tuple(D.size())}")

    if Q.size(-1) != D.size(-1):
        raise OperationError(f"Embedding dimension mismatch: Q has {Q.size(-1)}, D has {D.size(-1)}")


def colbert_raw_score(Q, D):
    """
    计算所有 (查询, 文档, 查询 token, 文档 token) 组合的点积。

    参数:
        Q (Tensor): 查询嵌入 (num_queries, q_tokens, dim)。
        D (Tensor): 文档嵌入 (num_docs, d_tokens, dim)。

    返回:
        torch.Tensor: (num_queries, num_docs, q_tokens, d_tokens)
    """
    _check_shapes(Q, D)

    D = D.to(device=Q.device, dtype=Q.dtype)

    # (num_queries, 1, q_tokens, dim) @ (1, num_docs, dim, d_tokens)
    return Q.unsqueeze(1) @ D.transpose(1, 2).unsqueeze(0)


def colbert_score(Q, D):
    """
    ColBERT 的 MaxSim 得分。

    对于每个 (查询, 文档) 对: 先对每个查询 token 取它与所有文档 token 相似度的最大值，
    再对查询 token 求和。这个聚合顺序是非对称的，交换查询和文档一般会得到不同的结果。

    返回:
        torch.Tensor: (num_queries, num_docs)
    """
    scores = colbert_raw_score(Q, D)

    # (nq, nd, q_tokens, d_tokens) -> (nq, nd, q_tokens) -> (nq, nd)
    return scores.max(-1).values.sum(-1)
