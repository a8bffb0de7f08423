# 文件名: colbert_infer/cli.py

import sys
import argparse

import torch

from colbert_infer.data import EncodeInput, EncodeOutput, SimilarityInput, PoolingInput
from colbert_infer.infra.config import ColBERTConfig
from colbert_infer.modeling.checkpoint import Checkpoint
from colbert_infer.modeling.pooling import hierarchical_pooling
from colbert_infer.utils.utils import print_message


def read_input(path):
    """读取 JSON 输入；'-' 表示标准输入。"""
    if path == '-':
        return sys.stdin.read()
    with open(path) as f:
        return f.read()


def write_output(path, content):
    if path is None or path == '-':
        sys.stdout.write(content + '\n')
        return
    with open(path, 'w') as f:
        f.write(content + '\n')


def load_checkpoint(args):
    config = ColBERTConfig()
    if args.device is not None:
        config.set('device', args.device)
    if args.verbose:
        config.set('verbose', True)
    return Checkpoint.from_pretrained(args.model, colbert_config=config)


def run_encode(args):
    params = EncodeInput.from_json(read_input(args.input))
    checkpoint = load_checkpoint(args)

    E = checkpoint.encode(params.sentences, is_query=args.query, batch_size=params.batch_size or args.batch_size,
                          to_cpu=True, showprogress=args.verbose)
    print_message(f"#> Encoded {len(params.sentences)} sentences into {tuple(E.size())}")

    return EncodeOutput.cast(E)


def run_similarity(args):
    params = SimilarityInput.from_json(read_input(args.input))
    checkpoint = load_checkpoint(args)

    Q = checkpoint.queryFromText(params.queries, bsize=args.batch_size)
    D = checkpoint.docFromText(params.documents, bsize=args.batch_size)

    return checkpoint.similarity(Q, D)


def run_raw_similarity(args):
    params = SimilarityInput.from_json(read_input(args.input))
    checkpoint = load_checkpoint(args)

    return checkpoint.raw_similarity_matrix(params.queries, params.documents)


def run_pool(args):
    params = PoolingInput.from_json(read_input(args.input))

    if len(params.embeddings) == 0:
        return EncodeOutput(embeddings=[])

    pooled = hierarchical_pooling(torch.tensor(params.embeddings, dtype=torch.float32), params.pool_factor)
    return EncodeOutput.cast(pooled)


COMMANDS = {
    'encode': run_encode,
    'similarity': run_similarity,
    'raw-similarity': run_raw_similarity,
    'pool': run_pool,
}


def build_parser():
    parser = argparse.ArgumentParser(prog='colbert_infer', description="ColBERT late-interaction inference.")
    subparsers = parser.add_subparsers(dest='command', required=True)

    for command in COMMANDS:
        subparser = subparsers.add_parser(command)
        subparser.add_argument('--input', dest='input', default='-', help="JSON 输入文件, '-' 表示标准输入")
        subparser.add_argument('--output', dest='output', default=None, help="JSON 输出文件, 默认写到标准输出")

        if command == 'pool':
            continue

        subparser.add_argument('--model', dest='model', required=True, help="模型目录或 Hugging Face Hub 仓库 ID")
        subparser.add_argument('--device', dest='device', default=None, help="例如 'cpu' 或 'cuda:0'")
        subparser.add_argument('--bsize', dest='batch_size', default=None, type=int, help="分块大小")
        subparser.add_argument('--verbose', dest='verbose', action='store_true')

        if command == 'encode':
            subparser.add_argument('--query', dest='query', action='store_true', help="按查询编码 (默认按文档编码)")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    result = COMMANDS[args.command](args)
    write_output(args.output, result.to_json())
    return 0
