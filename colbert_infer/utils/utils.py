# 文件名: colbert_infer/utils/utils.py

import datetime


def print_message(*s, condition=True, pad=False):
    """
    打印带有时间戳的消息。

    参数:
        *s: 任意数量的参数，将被转换成字符串并用空格连接。
        condition (bool): 只有当此条件为 True 时才打印消息。
        pad (bool): 如果为 True，则在消息前后添加换行符。

    返回:
        str: 格式化后的消息字符串（无论是否打印）。
    """
    s = ' '.join([str(x) for x in s])
    msg = "[{}] {}".format(datetime.datetime.now().strftime("%b %d, %H:%M:%S"), s)

    if condition:
        msg = msg if not pad else f'\n{msg}\n'
        print(msg, flush=True)

    return msg


def batch(group, bsize):
    """
    将一个列表（group）分割成指定大小（bsize）的连续批次，保持原始顺序。
    最后一个批次可能小于 bsize。
    """
    assert bsize > 0, bsize

    offset = 0
    while offset < len(group):
        L = group[offset: offset + bsize]
        yield L
        offset += len(L)


# see https://stackoverflow.com/a/45187287
class NullContextManager(object):
    def __init__(self, dummy_resource=None):
        self.dummy_resource = dummy_resource

    def __enter__(self):
        return self.dummy_resource

    def __exit__(self, *args):
        pass
