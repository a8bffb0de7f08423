# 文件名: colbert_infer/modeling/base_colbert.py

import torch

from colbert_infer.errors import ConfigurationError
from colbert_infer.infra.config import ColBERTConfig, load_json
from colbert_infer.modeling.hf_colbert import HF_ColBERT, resolve_checkpoint_path
from colbert_infer.utils.utils import print_message


class BaseColBERT(torch.nn.Module):
    """
    一个基础的、浅层的 ColBERT 模块封装。

    这个类将网络 (HF_ColBERT)、编码配置以及底层的 HuggingFace 分词器包装在一起。
    构造完成后，模型权重、投影层权重和分词器词汇表都是只读的，可以在并发调用之间共享。

    默认情况下，模型处于评估模式 (eval mode)。
    """

    def __init__(self, model: HF_ColBERT, raw_tokenizer, colbert_config=None, name=None):
        """
        Args:
            model (HF_ColBERT): 编码器 + 投影层。
            raw_tokenizer (PreTrainedTokenizerFast): 底层分词器。
            colbert_config (ColBERTConfig, optional): 编码配置，未赋值的字段使用默认值。
            name (str, optional): 模型名称或路径，仅用于记录。
        """
        super().__init__()

        self.name = name
        self.colbert_config = ColBERTConfig.from_existing(colbert_config)

        if not self.colbert_config.do_query_expansion and self.colbert_config.attend_to_expansion_tokens:
            # 没有查询扩展时，关注扩展 token 没有意义
            self.colbert_config.set('attend_to_expansion_tokens', False)

        self.model = model
        self.raw_tokenizer = raw_tokenizer

        vocab = self.raw_tokenizer.get_vocab()

        mask_token = self.colbert_config.mask_token
        self.mask_token_id = vocab.get(mask_token)

        if self.mask_token_id is None:
            raise ConfigurationError(f"Token '{mask_token}' not found in the tokenizer's vocabulary.")

        self.pad_token_id = _resolve_pad_token_id(vocab, self.colbert_config.pad_token,
                                                  self.raw_tokenizer.pad_token_id)

        self.model.to(self.colbert_config.device_)
        self.eval()

    @classmethod
    def from_pretrained(cls, name_or_path, colbert_config=None):
        """
        从本地模型目录或 Hugging Face Hub 仓库 ID 加载。

        编码配置的优先级 (从低到高): 默认值 -> 模型目录中的
        config_sentence_transformers.json / special_tokens_map.json -> colbert_config 中显式赋值的字段。
        """
        path = resolve_checkpoint_path(name_or_path)

        config = ColBERTConfig.from_existing(ColBERTConfig.load_from_checkpoint(path), colbert_config)
        model = HF_ColBERT.from_pretrained(path)
        raw_tokenizer = HF_ColBERT.raw_tokenizer_from_pretrained(path)

        obj = cls(model, raw_tokenizer, colbert_config=config, name=name_or_path)
        obj.describe()
        return obj

    @classmethod
    def from_bytes(cls, weights, dense_weights, tokenizer_bytes, config_bytes, dense_config_bytes,
                   sentence_transformers_config=None, special_tokens_map=None,
                   dense2_weights=None, dense2_config_bytes=None, colbert_config=None):
        """
        从字节缓冲区构造模型。sentence_transformers_config 和 special_tokens_map 是可选的
        JSON 文档，用于推导编码配置。
        """
        st_config = load_json(sentence_transformers_config, name='config_sentence_transformers.json') \
            if sentence_transformers_config is not None else None
        special_tokens = load_json(special_tokens_map, name='special_tokens_map.json') \
            if special_tokens_map is not None else None

        config = ColBERTConfig.from_existing(ColBERTConfig.from_checkpoint_documents(st_config, special_tokens),
                                             colbert_config)
        model = HF_ColBERT.from_bytes(weights, config_bytes, dense_weights, dense_config_bytes,
                                      dense2_weights=dense2_weights, dense2_config_bytes=dense2_config_bytes)
        raw_tokenizer = HF_ColBERT.raw_tokenizer_from_bytes(tokenizer_bytes)

        return cls(model, raw_tokenizer, colbert_config=config)

    @property
    def device(self):
        """返回模型所在的设备 (例如 'cpu' 或 'cuda:0')。"""
        return self.model.device

    @property
    def dim(self):
        return self.model.dim

    def describe(self):
        print_message(f"#> {type(self).__name__}({self.name}) on {self.device}, dim = {self.dim}")
        print_message("#> Encoding config:", self.colbert_config.export(), condition=self.colbert_config.verbose)


def _resolve_pad_token_id(vocab, pad_token, tokenizer_pad_token_id):
    """文档填充使用的 token ID。优先级: 配置中的 pad_token -> 分词器自己的 pad token -> 词汇表中的 '[PAD]' -> 0。"""
    if pad_token is not None:
        if pad_token not in vocab:
            raise ConfigurationError(f"Token '{pad_token}' not found in the tokenizer's vocabulary.")
        return vocab[pad_token]

    if tokenizer_pad_token_id is not None:
        return tokenizer_pad_token_id

    return vocab.get('[PAD]', 0)
