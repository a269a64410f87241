"""有界遍历工具"""
import logging
from typing import Callable, Iterator, List

logger = logging.getLogger(__name__)

INVALID_INDEX = -1

# 单次遍历的最大步数，防止拓扑损坏时死循环
MAX_TRAVERSAL_STEPS = 10000


class BoundedWalk:
    """
    沿索引链的有界遍历

    从start出发反复调用step，遇到INVALID_INDEX、回到起点或重复访问时停止。
    可重复迭代，每次迭代都从头开始。

    Args:
        start: 起始索引
        step: 后继函数
        max_steps: 最大步数
    """

    def __init__(
        self,
        start: int,
        step: Callable[[int], int],
        max_steps: int = MAX_TRAVERSAL_STEPS
    ):
        self.start = start
        self.step = step
        self.max_steps = max_steps
        self.truncated = False
        self.closed = False

    def __iter__(self) -> Iterator[int]:
        self.truncated = False
        self.closed = False
        if self.start == INVALID_INDEX:
            return

        visited = set()
        current = self.start
        for _ in range(self.max_steps):
            yield current
            visited.add(current)
            current = self.step(current)
            if current == INVALID_INDEX:
                return
            if current == self.start:
                self.closed = True
                return
            if current in visited:
                logger.warning(f"遍历在 {current} 处出现不经过起点的环，已截断")
                self.truncated = True
                return

        logger.warning(f"遍历超过 {self.max_steps} 步，已截断 (起点 {self.start})")
        self.truncated = True

    def to_list(self) -> List[int]:
        return list(self)

    def last(self) -> int:
        """返回遍历的最后一个元素"""
        result = INVALID_INDEX
        for item in self:
            result = item
        return result
