# 文件名: colbert_infer/data/records.py

import ujson
import dataclasses

from dataclasses import dataclass
from typing import List, Optional

from colbert_infer.errors import OperationError
from colbert_infer.infra.config import load_json


class JsonRecord:
    """
    JSON 序列化边界上的记录基类。字段名即 JSON 键名。
    """

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise OperationError(f"{cls.__name__} expects a JSON object, got {type(data).__name__}")

        names = {field.name for field in dataclasses.fields(cls)}
        required = {field.name for field in dataclasses.fields(cls)
                    if field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING}

        missing = required - set(data.keys())
        if missing:
            raise OperationError(f"{cls.__name__} is missing required field(s): {sorted(missing)}")

        return cls(**{k: v for k, v in data.items() if k in names})

    @classmethod
    def from_json(cls, source):
        return cls.from_dict(load_json(source, name=cls.__name__))

    def toDict(self):
        return dataclasses.asdict(self)

    def to_json(self, indent=0):
        return ujson.dumps(self.toDict(), indent=indent)


@dataclass
class EncodeInput(JsonRecord):
    sentences: List[str]
    batch_size: Optional[int] = None


@dataclass
class EncodeOutput(JsonRecord):
    # (batch, tokens, dim)
    embeddings: List[List[List[float]]]

    @classmethod
    def cast(cls, tensor):
        return cls(embeddings=tensor.detach().float().cpu().tolist())


@dataclass
class SimilarityInput(JsonRecord):
    queries: List[str]
    documents: List[str]


@dataclass
class Similarities(JsonRecord):
    """MaxSim 得分矩阵 (num_queries, num_documents)。"""
    data: List[List[float]]

    @classmethod
    def cast(cls, tensor):
        return cls(data=tensor.detach().float().cpu().tolist())


@dataclass
class RawSimilarityOutput(JsonRecord):
    """未规约的得分张量 (num_queries, num_documents, q_tokens, d_tokens) 以及对应的 token 字符串。"""
    similarity_matrix: List[List[List[List[float]]]]
    query_tokens: List[List[str]]
    document_tokens: List[List[str]]


@dataclass
class PoolingInput(JsonRecord):
    embeddings: List[List[List[float]]]
    pool_factor: int
