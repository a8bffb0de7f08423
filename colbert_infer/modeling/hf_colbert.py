# 文件名: colbert_infer/modeling/hf_colbert.py

import os

import torch.nn as nn
import safetensors.torch
from huggingface_hub import snapshot_download
from tokenizers import Tokenizer
from transformers import PreTrainedTokenizerFast

from colbert_infer.errors import ConfigurationError, UpstreamError
from colbert_infer.infra.config import load_json, read_json
from colbert_infer.modeling.base_model import load_base_model
from colbert_infer.utils.utils import print_message


MODEL_CONFIG_NAME = 'config.json'
MODEL_WEIGHTS_NAME = 'model.safetensors'
TOKENIZER_NAME = 'tokenizer.json'
# sentence-transformers 风格的投影层目录; 2_Dense 是可选的第二个投影层
DENSE_DIRS = ['1_Dense', '2_Dense']


class HF_ColBERT(nn.Module):
    """
    ColBERT 的核心网络：一个基础编码器 (BERT 或 ModernBERT) 后面跟着一个或多个
    无偏置的线性投影层，将隐藏状态映射到检索向量的维度。

    基础编码器是一个带有 `forward(token_ids, attention_mask, token_type_ids)` 方法的对象，
    由 config.json 中的 'architectures' 在构造时选择。
    """

    def __init__(self, base_model, linears):
        super().__init__()

        self.base_model = base_model
        # 注册为子模块，使 .to(device) / .eval() 对编码器权重生效
        self.bert = base_model.model
        self.linear = nn.Sequential(*linears)

        self.dim = linears[-1].out_features

    @property
    def device(self):
        return next(self.linear.parameters()).device

    def forward(self, token_ids, attention_mask, token_type_ids):
        """
        Returns:
            torch.Tensor: 投影后的 token 向量 (batch, seq_len, dim)，尚未归一化。
        """
        try:
            hidden = self.base_model.forward(token_ids, attention_mask, token_type_ids)
            return self.linear(hidden.to(self.linear[0].weight.dtype))
        except (RuntimeError, ValueError, IndexError) as e:
            raise UpstreamError('Forward', str(e)) from e

    @classmethod
    def from_bytes(cls, weights, config_bytes, dense_weights, dense_config_bytes,
                   dense2_weights=None, dense2_config_bytes=None):
        """
        从字节缓冲区构造模型。

        Args:
            weights (bytes): 编码器的 safetensors 权重。
            config_bytes (bytes): config.json。
            dense_weights (bytes): 1_Dense 的 safetensors 权重。
            dense_config_bytes (bytes): 1_Dense/config.json。
            dense2_weights, dense2_config_bytes (bytes, optional): 可选的 2_Dense。
        """
        config_dict = load_json(config_bytes, name=MODEL_CONFIG_NAME)
        base_model = load_base_model(config_dict, _load_safetensors(weights))

        dense_layers = [(dense_config_bytes, dense_weights)]
        if dense2_weights is not None and dense2_config_bytes is not None:
            dense_layers.append((dense2_config_bytes, dense2_weights))

        linears = [_build_linear(load_json(config, name='Dense config'), _load_safetensors(state))
                   for config, state in dense_layers]

        return cls(base_model, linears)

    @classmethod
    def from_pretrained(cls, path):
        """
        从一个 sentence-transformers / PyLate 格式的模型目录加载。

        目录结构:
            config.json, model.safetensors, tokenizer.json,
            1_Dense/config.json, 1_Dense/model.safetensors,
            (可选) 2_Dense/config.json, 2_Dense/model.safetensors
        """
        print_message(f"#> Loading the base model from {path} ..")

        config_dict = read_json(os.path.join(path, MODEL_CONFIG_NAME))
        base_model = load_base_model(config_dict, _load_safetensors_file(os.path.join(path, MODEL_WEIGHTS_NAME)))

        linears = []
        for dense_dir in DENSE_DIRS:
            dense_path = os.path.join(path, dense_dir)
            if not os.path.exists(os.path.join(dense_path, MODEL_CONFIG_NAME)):
                continue
            dense_config = read_json(os.path.join(dense_path, MODEL_CONFIG_NAME))
            state_dict = _load_safetensors_file(os.path.join(dense_path, MODEL_WEIGHTS_NAME))
            linears.append(_build_linear(dense_config, state_dict))

        if len(linears) == 0:
            raise ConfigurationError(f"Missing projection layer config {os.path.join(path, DENSE_DIRS[0])}")

        return cls(base_model, linears)

    @staticmethod
    def raw_tokenizer_from_bytes(tokenizer_bytes):
        """从 tokenizer.json 的字节内容构造 HF 快速分词器。"""
        if isinstance(tokenizer_bytes, bytes):
            tokenizer_bytes = tokenizer_bytes.decode('utf-8')

        try:
            return PreTrainedTokenizerFast(tokenizer_object=Tokenizer.from_str(tokenizer_bytes))
        except Exception as e:
            raise UpstreamError('Tokenizer', str(e)) from e

    @staticmethod
    def raw_tokenizer_from_pretrained(path):
        """从模型目录中的 tokenizer.json 构造 HF 快速分词器。"""
        try:
            return PreTrainedTokenizerFast(tokenizer_file=os.path.join(path, TOKENIZER_NAME))
        except Exception as e:
            raise UpstreamError('Tokenizer', str(e)) from e


def _build_linear(dense_config, state_dict):
    """根据 Dense 配置 ('in_features' / 'out_features') 构造无偏置的线性层并加载权重。"""
    in_features, out_features = dense_config.get('in_features'), dense_config.get('out_features')

    if not isinstance(in_features, int) or isinstance(in_features, bool):
        raise ConfigurationError("Missing 'in_features' in dense config")
    if not isinstance(out_features, int) or isinstance(out_features, bool):
        raise ConfigurationError("Missing 'out_features' in dense config")

    weight = state_dict.get('linear.weight', state_dict.get('weight'))
    if weight is None:
        raise ConfigurationError("Missing 'linear.weight' in dense weights")

    linear = nn.Linear(in_features, out_features, bias=False)

    try:
        linear.load_state_dict({'weight': weight.float()})
    except RuntimeError as e:
        raise UpstreamError('Safetensors', str(e)) from e

    return linear.eval()


def _load_safetensors(data):
    try:
        return safetensors.torch.load(data)
    except Exception as e:
        raise UpstreamError('Safetensors', str(e)) from e


def _load_safetensors_file(path):
    try:
        return safetensors.torch.load_file(path, device='cpu')
    except Exception as e:
        raise UpstreamError('Safetensors', f"{path}: {e}") from e


def resolve_checkpoint_path(name_or_path):
    """
    本地目录直接返回；否则将其视为 Hugging Face Hub 上的仓库 ID 并下载快照。
    """
    if os.path.isdir(name_or_path):
        return name_or_path

    try:
        return snapshot_download(repo_id=name_or_path)
    except Exception as e:
        raise UpstreamError('Hugging Face Hub', str(e)) from e
