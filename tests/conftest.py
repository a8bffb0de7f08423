"""Shared fixtures: a tiny ColBERT checkpoint built offline in a temporary directory."""

import os

import pytest
import torch
import torch.nn as nn
import ujson
from safetensors.torch import save_file
from tokenizers import Tokenizer, models, pre_tokenizers, processors
from transformers import (BertConfig, BertForMaskedLM, BertModel, ModernBertConfig, ModernBertModel,
                          PreTrainedTokenizerFast)

from colbert_infer import Checkpoint, ColBERTConfig
from colbert_infer.modeling.hf_colbert import HF_ColBERT


SPECIAL_TOKENS = ["[PAD]", "[UNK]", "[CLS]", "[SEP]", "[MASK]", "[Q]", "[D]"]
WORDS = [
    "what", "is", "rust", "a", "language", "python", "the", "of", "and", "fast",
    "safe", "memory", "systems", "programming", "snake", "green", "code", "compiler",
]
VOCAB = SPECIAL_TOKENS + WORDS

HIDDEN_SIZE = 16
DIM = 8
QUERY_LENGTH = 8
DOCUMENT_LENGTH = 16


def build_tokenizer(padding=True):
    """A whitespace word-level tokenizer with BERT-style [CLS] ... [SEP] framing."""
    tok = Tokenizer(models.WordLevel(vocab={w: i for i, w in enumerate(VOCAB)}, unk_token="[UNK]"))
    tok.pre_tokenizer = pre_tokenizers.Whitespace()
    tok.add_special_tokens(SPECIAL_TOKENS)
    tok.post_processor = processors.TemplateProcessing(
        single="[CLS] $A [SEP]",
        special_tokens=[("[CLS]", VOCAB.index("[CLS]")), ("[SEP]", VOCAB.index("[SEP]"))],
    )
    if padding:
        tok.enable_padding(pad_id=VOCAB.index("[PAD]"), pad_token="[PAD]")
    return tok


def build_base_model(architecture):
    """A tiny randomly initialised encoder whose state dict is laid out like the named architecture."""
    if architecture == "ModernBertModel":
        config = ModernBertConfig(
            vocab_size=len(VOCAB),
            hidden_size=HIDDEN_SIZE,
            intermediate_size=32,
            num_hidden_layers=1,
            num_attention_heads=2,
            max_position_embeddings=64,
            pad_token_id=VOCAB.index("[PAD]"),
            cls_token_id=VOCAB.index("[CLS]"),
            sep_token_id=VOCAB.index("[SEP]"),
            bos_token_id=VOCAB.index("[CLS]"),
            eos_token_id=VOCAB.index("[SEP]"),
            reference_compile=False,
        )
        model = ModernBertModel(config)
    else:
        config = BertConfig(
            vocab_size=len(VOCAB),
            hidden_size=HIDDEN_SIZE,
            num_hidden_layers=1,
            num_attention_heads=2,
            intermediate_size=32,
            max_position_embeddings=64,
        )
        if architecture == "BertForMaskedLM":
            model = BertForMaskedLM(config)
        else:
            model = BertModel(config, add_pooling_layer=False)

    config.architectures = [architecture]
    return config, model


def write_model_dir(path, architecture="BertModel", st_config=None, special_tokens_map=None, tokenizer_padding=True):
    torch.manual_seed(0)

    config, model = build_base_model(architecture)

    os.makedirs(os.path.join(path, "1_Dense"), exist_ok=True)

    with open(os.path.join(path, "config.json"), "w") as f:
        f.write(config.to_json_string())

    # tied weights (e.g. the masked LM decoder) must not share storage in safetensors
    save_file({k: v.detach().clone().contiguous() for k, v in model.state_dict().items()},
              os.path.join(path, "model.safetensors"))
    build_tokenizer(padding=tokenizer_padding).save(os.path.join(path, "tokenizer.json"))

    linear = nn.Linear(HIDDEN_SIZE, DIM, bias=False)
    save_file({"linear.weight": linear.weight.detach().contiguous()},
              os.path.join(path, "1_Dense", "model.safetensors"))
    with open(os.path.join(path, "1_Dense", "config.json"), "w") as f:
        ujson.dump({"in_features": HIDDEN_SIZE, "out_features": DIM, "bias": False}, f)

    if st_config is None:
        st_config = {
            "query_prefix": "[Q]",
            "document_prefix": "[D]",
            "query_length": QUERY_LENGTH,
            "document_length": DOCUMENT_LENGTH,
            "do_query_expansion": True,
            "attend_to_expansion_tokens": False,
        }
    with open(os.path.join(path, "config_sentence_transformers.json"), "w") as f:
        ujson.dump(st_config, f)

    with open(os.path.join(path, "special_tokens_map.json"), "w") as f:
        ujson.dump(special_tokens_map or {"mask_token": "[MASK]", "pad_token": "[PAD]"}, f)

    return path


def read_bytes(path):
    with open(path, "rb") as f:
        return f.read()


@pytest.fixture(scope="session")
def model_dir(tmp_path_factory):
    return str(write_model_dir(str(tmp_path_factory.mktemp("tiny-colbert"))))


@pytest.fixture()
def load_checkpoint(model_dir):
    def _load(**config_kwargs):
        config_kwargs.setdefault("device", "cpu")
        return Checkpoint.from_pretrained(model_dir, colbert_config=ColBERTConfig(**config_kwargs))
    return _load


@pytest.fixture()
def checkpoint(load_checkpoint):
    return load_checkpoint()


class OneHotBackbone:
    """Maps every token id to its one-hot vector, so MaxSim counts exact token matches."""

    name = "one-hot"

    def __init__(self, vocab_size):
        self.model = nn.Embedding.from_pretrained(torch.eye(vocab_size))

    def forward(self, token_ids, attention_mask, token_type_ids):
        return self.model(token_ids)


@pytest.fixture()
def one_hot_checkpoint():
    def _build(tokenizer_padding=True, **config_kwargs):
        config_kwargs.setdefault("device", "cpu")
        linear = nn.Linear(len(VOCAB), len(VOCAB), bias=False)
        with torch.no_grad():
            linear.weight.copy_(torch.eye(len(VOCAB)))
        model = HF_ColBERT(OneHotBackbone(len(VOCAB)), [linear])
        raw_tokenizer = PreTrainedTokenizerFast(tokenizer_object=build_tokenizer(padding=tokenizer_padding))
        return Checkpoint(model, raw_tokenizer, colbert_config=ColBERTConfig(**config_kwargs))
    return _build
