# 文件名: colbert_infer/modeling/pooling.py

import torch
import numpy as np
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import squareform

from colbert_infer.errors import OperationError


def hierarchical_pooling(documents_embeddings, pool_factor, protected_tokens=1):
    """
    通过层次聚类压缩文档的 token 向量数量。

    对于每个文档:
      1. 去掉全零的填充行 (全部为零时保留一个零向量)；
      2. 前 protected_tokens 个向量 (通常是 [CLS] 和前缀) 原样保留；
      3. 其余向量按余弦距离做 Ward 层次聚类，聚成 max(n // pool_factor, 1) 个簇，
         每个簇用簇内向量的均值代替。
    最后把所有文档用零向量填充到批次内的最大长度。

    结果的 token 数永远不会超过输入的 token 数。

    Args:
        documents_embeddings (torch.Tensor): (num_docs, tokens, dim)
        pool_factor (int): 压缩倍数。<= 1 时原样返回。
        protected_tokens (int): 不参与聚类的前缀向量个数。

    Returns:
        torch.Tensor: (num_docs, pooled_tokens, dim)
    """
    if documents_embeddings.dim() != 3:
        raise OperationError(f"Expected embeddings of shape (docs, tokens, dim), "
                             f"got {tuple(documents_embeddings.size())}")

    if pool_factor <= 1 or documents_embeddings.size(0) == 0 or documents_embeddings.size(1) == 0:
        return documents_embeddings

    pooled = [_pool_document(document, pool_factor, protected_tokens) for document in documents_embeddings]

    return torch.nn.utils.rnn.pad_sequence(pooled, batch_first=True, padding_value=0.0)


def _pool_document(document, pool_factor, protected_tokens):
    document = document[document.abs().sum(-1) != 0]

    if document.size(0) == 0:
        return document.new_zeros(1, document.size(-1))

    protected, embeddings = document[:protected_tokens], document[protected_tokens:]

    num_tokens = embeddings.size(0)
    num_clusters = max(num_tokens // pool_factor, 1)

    if num_tokens <= 1 or num_clusters >= num_tokens:
        return document

    E = embeddings.detach().double().cpu().numpy()
    distances = np.clip(1.0 - E @ E.T, 0.0, None)
    distances = (distances + distances.T) / 2
    np.fill_diagonal(distances, 0.0)

    clusters = fcluster(linkage(squareform(distances, checks=False), method='ward'),
                        t=num_clusters, criterion='maxclust')

    pooled = [embeddings[torch.from_numpy(clusters == cluster_id).to(embeddings.device)].mean(0)
              for cluster_id in np.unique(clusters)]

    return torch.cat((protected, torch.stack(pooled)))
