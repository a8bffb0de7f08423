# 文件名: colbert_infer/modeling/tokenization/__init__.py

from colbert_infer.modeling.tokenization.query_tokenization import QueryTokenizer
from colbert_infer.modeling.tokenization.doc_tokenization import DocTokenizer
from colbert_infer.modeling.tokenization.utils import TokenBatch, TokenizationParams
