# 文件名: colbert_infer/modeling/tokenization/query_tokenization.py

from colbert_infer.infra import ColBERTConfig
from colbert_infer.utils.utils import print_message
from colbert_infer.modeling.tokenization.utils import (TokenizationParams, tensorize_texts, ids_to_tokens,
                                                      _split_into_batches)


class QueryTokenizer:
    """
    为 ColBERT 的查询（queries）设计的专用分词器。

    查询总是被截断并填充到固定的 query_length，填充位置使用 mask token，
    这些 mask token 就是查询扩展（query expansion）所用的“扩展”槽位。
    """
    def __init__(self, tok, config: ColBERTConfig, mask_token_id):
        self.tok = tok
        self.config = config
        self.mask_token, self.mask_token_id = config.mask_token, mask_token_id
        self.used = False

    @property
    def params(self):
        return TokenizationParams(
            prefix=self.config.query_prefix,
            max_length=self.config.query_length,
            padding='max_length',
            pad_token_id=self.mask_token_id,
            attend_to_padding=self.config.attend_to_expansion_tokens_,
        )

    def tokenize(self, batch_text):
        """将一批查询文本转换为 token 字符串列表 (包含特殊 token 和填充的 mask token)。"""
        return ids_to_tokens(self.tok, batch_text, self.params)

    def tensorize(self, batch_text, bsize=None):
        """
        将一批查询文本进行分词、编码，并转换为 PyTorch 张量。

        Args:
            batch_text (list[str]): 待处理的查询文本列表。
            bsize (int, optional): 如果提供，先按顺序切分为多个分块，每个分块单独分词。

        Returns:
            如果 bsize 未提供，返回一个 TokenBatch；否则返回 TokenBatch 的列表。
        """
        if bsize:
            return [self.tensorize(chunk) for chunk in _split_into_batches(batch_text, bsize)]

        params = self.params
        token_batch = tensorize_texts(self.tok, batch_text, params)

        # 第一次调用时打印示例，用于调试
        if not self.used:
            self.used = True
            print_message("#> QueryTokenizer.tensorize 的首次调用示例:", condition=self.config.verbose)
            print_message(f"#> 输入文本: {params.prefix + batch_text[0]}", condition=self.config.verbose)
            print_message(f"#> 输出 IDs: {token_batch.token_ids[0]}", condition=self.config.verbose)
            print_message(f"#> 输出 Mask: {token_batch.attention_mask[0]}", condition=self.config.verbose)

        return token_batch
