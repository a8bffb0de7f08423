# 文件名: colbert_infer/modeling/checkpoint.py

import torch
from tqdm import tqdm
from concurrent.futures import ThreadPoolExecutor, as_completed

from colbert_infer.data import Similarities, RawSimilarityOutput
from colbert_infer.errors import OperationError
from colbert_infer.modeling.tokenization import QueryTokenizer, DocTokenizer
from colbert_infer.utils.amp import MixedPrecisionManager
from colbert_infer.utils.utils import print_message
from colbert_infer.modeling.colbert import ColBERT, colbert_score, colbert_raw_score


class Checkpoint(ColBERT):
    """
    一个专门用于推理（Inference）的 ColBERT 模型封装类。

    它提供了直接从文本编码查询和文档的 API：输入列表被切分为大小不超过 batch_size 的
    连续分块，每个分块独立完成 分词 -> 前向传播 -> 投影 -> 后处理，最后按原始顺序拼接。
    """

    def __init__(self, *args, **kw_args):
        super().__init__(*args, **kw_args)
        assert not self.training, "Checkpoint 实例必须处于评估模式"

        self.query_tokenizer = QueryTokenizer(self.raw_tokenizer, self.colbert_config, self.mask_token_id)
        self.doc_tokenizer = DocTokenizer(self.raw_tokenizer, self.colbert_config, self.pad_token_id)

        self.amp_manager = MixedPrecisionManager(self.colbert_config.amp)

    def query(self, *args, to_cpu=False):
        with torch.no_grad():
            with self.amp_manager.context(self.device):
                Q = super().query(*args).float()
                return Q.cpu() if to_cpu else Q

    def doc(self, *args, to_cpu=False):
        with torch.no_grad():
            with self.amp_manager.context(self.device):
                D = super().doc(*args).float()
                return D.cpu() if to_cpu else D

    def encode(self, sentences, is_query, batch_size=None, to_cpu=False, showprogress=False):
        """
        将一组句子编码为 (len(sentences), tokens, dim) 的嵌入张量。

        Args:
            sentences (list[str]): 查询或文档文本。
            is_query (bool): True 表示查询，False 表示文档。
            batch_size (int, optional): 覆盖配置中的 batch_size。
            to_cpu (bool, optional): 是否将结果移动到 CPU。
            showprogress (bool, optional): 是否显示 tqdm 进度条。

        Raises:
            OperationError: 输入列表为空。任何一个分块失败都会使整个调用失败。
        """
        if len(sentences) == 0:
            raise OperationError("Input sentences cannot be empty.")

        bsize = self.colbert_config.batch_size if batch_size is None else batch_size
        if bsize <= 0:
            raise OperationError(f"batch_size must be positive, got {bsize}")

        # 在调用线程上顺序完成分词，前向传播再按分块分发
        tokenizer = self.query_tokenizer if is_query else self.doc_tokenizer
        batches = tokenizer.tensorize(sentences, bsize=bsize)

        encode_fn = self.query if is_query else self.doc
        num_workers = min(self.colbert_config.num_workers_, len(batches))

        if self.device.type == 'cpu' and num_workers > 1:
            print_message(f"#> Encoding {len(sentences)} {'queries' if is_query else 'documents'} "
                          f"in {len(batches)} chunks on {num_workers} threads ..",
                          condition=self.colbert_config.verbose)
            batches_E = _encode_in_parallel(encode_fn, batches, num_workers, to_cpu, showprogress)
        else:
            batches_E = [encode_fn(*token_batch, to_cpu=to_cpu)
                         for token_batch in tqdm(batches, disable=not showprogress)]

        if len(batches_E) == 1:
            return batches_E[0]

        return _stack_3D_tensors(batches_E)

    def queryFromText(self, queries, bsize=None, to_cpu=False, showprogress=False):
        """从原始文本字符串列表编码查询。"""
        return self.encode(queries, is_query=True, batch_size=bsize, to_cpu=to_cpu, showprogress=showprogress)

    def docFromText(self, docs, bsize=None, to_cpu=False, showprogress=False):
        """从原始文本字符串列表编码文档。"""
        return self.encode(docs, is_query=False, batch_size=bsize, to_cpu=to_cpu, showprogress=showprogress)

    def similarity(self, Q, D):
        """
        计算 MaxSim 得分矩阵，返回 Similarities 记录 (num_queries, num_documents)。
        """
        return Similarities.cast(colbert_score(Q, D))

    def raw_similarity(self, Q, D):
        """返回未规约的得分张量 (num_queries, num_documents, q_tokens, d_tokens)。"""
        return colbert_raw_score(Q, D)

    def raw_similarity_matrix(self, queries, documents):
        """
        从文本计算未规约的得分张量，并附带查询和文档的 token 字符串，便于展示哪些 token 之间匹配。

        Returns:
            RawSimilarityOutput
        """
        query_tokens = self.query_tokenizer.tokenize(queries)
        document_tokens = self.doc_tokenizer.tokenize(documents)

        Q = self.queryFromText(queries)
        D = self.docFromText(documents)

        scores = self.raw_similarity(Q, D)

        return RawSimilarityOutput(similarity_matrix=scores.float().cpu().tolist(),
                                   query_tokens=query_tokens, document_tokens=document_tokens)


def _encode_in_parallel(encode_fn, batches, num_workers, to_cpu, showprogress):
    """
    在线程池中并行编码各个分块。结果按分块下标排序，不依赖完成顺序。
    任何一个分块抛出的异常都会原样向上传播，尚未开始的分块会被取消。
    """
    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        futures = {executor.submit(encode_fn, *token_batch, to_cpu=to_cpu): idx
                   for idx, token_batch in enumerate(batches)}

        results = []
        try:
            for future in tqdm(as_completed(futures), total=len(futures), disable=not showprogress):
                results.append((futures[future], future.result()))
        except BaseException:
            for future in futures:
                future.cancel()
            raise

    return [E for _, E in sorted(results, key=lambda x: x[0])]


def _stack_3D_tensors(groups):
    """将多个 token 维长度不同的 3D 张量用零向量补齐后，沿批次维拼接。"""
    bsize = sum(x.size(0) for x in groups)
    maxlen = max(x.size(1) for x in groups)
    hdim = groups[0].size(2)

    output = torch.zeros(bsize, maxlen, hdim, device=groups[0].device, dtype=groups[0].dtype)

    offset = 0
    for x in groups:
        endpos = offset + x.size(0)
        output[offset:endpos, :x.size(1)] = x
        offset = endpos

    return output
