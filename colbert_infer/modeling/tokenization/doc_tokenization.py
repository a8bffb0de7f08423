# 文件名: colbert_infer/modeling/tokenization/doc_tokenization.py

from colbert_infer.infra import ColBERTConfig
from colbert_infer.modeling.tokenization.utils import (TokenizationParams, tensorize_texts, ids_to_tokens,
                                                      _split_into_batches)


class DocTokenizer:
    """为 ColBERT 的文档设计的专用分词器。文档只填充到批次内最长的样本，填充位置使用 pad token。"""
    def __init__(self, tok, config: ColBERTConfig, pad_token_id):
        self.tok = tok
        self.config = config
        self.pad_token_id = pad_token_id

    @property
    def params(self):
        return TokenizationParams(
            prefix=self.config.document_prefix,
            max_length=self.config.document_length,
            padding='longest',
            pad_token_id=self.pad_token_id,
        )

    def tokenize(self, batch_text):
        """将一批文档文本转换为 token 字符串列表。"""
        return ids_to_tokens(self.tok, batch_text, self.params)

    def tensorize(self, batch_text, bsize=None):
        """
        将一批文档文本进行分词、编码，并转换为 PyTorch 张量。

        每个分块独立计算自己的最长长度，因此不同分块的 seq_len 可能不同。
        """
        if bsize:
            return [self.tensorize(chunk) for chunk in _split_into_batches(batch_text, bsize)]

        return tensorize_texts(self.tok, batch_text, self.params)
