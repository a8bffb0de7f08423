# 文件名: colbert_infer/utils/amp.py

import torch

from colbert_infer.utils.utils import NullContextManager


class MixedPrecisionManager:
    """
    推理阶段的自动混合精度（AMP）管理器。

    只在 CUDA 设备上启用 `torch.autocast`；在 CPU 等其他设备上返回一个空的上下文管理器，
    使调用方可以无条件地写 `with amp_manager.context(device): ...`。
    """

    def __init__(self, activated):
        self.activated = activated

    def context(self, device):
        """
        返回一个上下文管理器。

        Args:
            device (torch.device): 前向传播所在的设备。
        """
        if self.activated and device.type == 'cuda':
            return torch.autocast(device_type='cuda', dtype=torch.float16)
        return NullContextManager()
