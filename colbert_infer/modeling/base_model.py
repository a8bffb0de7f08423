# 文件名: colbert_infer/modeling/base_model.py

from transformers import BertConfig, BertModel, ModernBertConfig, ModernBertModel

from colbert_infer.errors import ConfigurationError, UpstreamError
from colbert_infer.utils.utils import print_message


class BertBackbone:
    """标准 BERT 编码器。前向传播使用 token_type_ids。"""

    name = 'bert'

    def __init__(self, model: BertModel):
        self.model = model

    @classmethod
    def from_state_dict(cls, config_dict, state_dict):
        config = BertConfig.from_dict(config_dict)
        model = BertModel(config, add_pooling_layer=False)
        _load_state_dict(model, state_dict)
        return cls(model)

    def forward(self, token_ids, attention_mask, token_type_ids):
        return self.model(input_ids=token_ids, attention_mask=attention_mask, token_type_ids=token_type_ids)[0]


class ModernBertBackbone:
    """ModernBERT 编码器。它没有 token type embedding，因此忽略 token_type_ids。"""

    name = 'modernbert'

    def __init__(self, model: ModernBertModel):
        self.model = model

    @classmethod
    def from_state_dict(cls, config_dict, state_dict):
        config = ModernBertConfig.from_dict(config_dict)
        model = ModernBertModel(config)
        _load_state_dict(model, state_dict)
        return cls(model)

    def forward(self, token_ids, attention_mask, token_type_ids):
        return self.model(input_ids=token_ids, attention_mask=attention_mask)[0]


# config.json 中 'architectures' 的取值 -> 对应的编码器实现
BACKBONES = {
    'ModernBertModel': ModernBertBackbone,
    'BertModel': BertBackbone,
    'BertForMaskedLM': BertBackbone,
}


def architecture_from_config(config_dict):
    """读取 config.json 中 'architectures' 的第一个元素。"""
    architectures = config_dict.get('architectures') if isinstance(config_dict, dict) else None

    if not isinstance(architectures, list) or len(architectures) == 0 or not isinstance(architectures[0], str):
        raise ConfigurationError("Missing or invalid 'architectures' in config.json")

    return architectures[0]


def load_base_model(config_dict, state_dict):
    """
    根据 config.json 中的 'architectures' 选择编码器实现，并加载权重。

    Args:
        config_dict (dict): config.json 的内容。
        state_dict (dict[str, torch.Tensor]): 编码器权重。

    Returns:
        BertBackbone or ModernBertBackbone
    """
    architecture = architecture_from_config(config_dict)

    if architecture not in BACKBONES:
        raise ConfigurationError(f"Unsupported architecture: {architecture}")

    return BACKBONES[architecture].from_state_dict(config_dict, state_dict)


def _load_state_dict(model, state_dict):
    """
    加载权重。兼容带有 base_model_prefix 的权重 (例如 BertForMaskedLM 保存的 'bert.xxx')，
    任务头 (例如 'cls.xxx') 的权重会被忽略。
    """
    prefix = model.base_model_prefix + '.'
    state_dict = {(k[len(prefix):] if k.startswith(prefix) else k): v for k, v in state_dict.items()}

    try:
        missing, unexpected = model.load_state_dict(state_dict, strict=False)
    except RuntimeError as e:
        raise UpstreamError('Safetensors', str(e)) from e

    if len(missing):
        print_message("[WARNING] Missing keys when loading the base model:", missing)

    model.float()
    model.eval()
