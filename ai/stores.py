"""
外部存储接口

战术库与经验库在对局之外读写，全部为 async 接口；
对局开始前读取一次快照，对局结束后写回
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union
import asyncio
import json
import logging
import uuid

from .knowledge import KnowledgeRecord
from .tactics import Tactic

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExternalStoreUnavailable(RuntimeError):
    """战术库 / 经验库读写失败"""


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    backoff: float = 0.2,
    description: str = "store operation",
) -> T:
    """
    带重试的存储调用

    线性退避: 第 k 次失败后等待 backoff * k 秒，用尽次数后抛出最后一次的异常

    Args:
        operation: 无参协程工厂
        attempts: 最大尝试次数
        backoff: 退避基数 (秒)
        description: 日志中的操作名

    Raises:
        ExternalStoreUnavailable
    """
    last_error: Optional[ExternalStoreUnavailable] = None
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except ExternalStoreUnavailable as e:
            last_error = e
            logger.debug(f"{description} failed (attempt {attempt}/{attempts}): {e}")
            if attempt < attempts:
                await asyncio.sleep(backoff * attempt)
    raise last_error if last_error else ExternalStoreUnavailable(f"{description}: no attempts made")


class TacticStore(ABC):
    """战术库"""

    @abstractmethod
    async def list(self) -> List[Tactic]:
        ...

    @abstractmethod
    async def create(self, tactic: Tactic) -> Tactic:
        """新建战术，返回带 id 的记录"""
        ...

    @abstractmethod
    async def update(self, tactic_id: str, fields: Dict[str, Any]) -> Tactic:
        """更新统计字段 (success_rate, confidence, times_used, times_won)"""
        ...


class KnowledgeStore(ABC):
    """经验库 (只追加)"""

    @abstractmethod
    async def list(self) -> List[KnowledgeRecord]:
        ...

    @abstractmethod
    async def append(self, record: KnowledgeRecord) -> None:
        ...


def _apply_fields(tactic: Tactic, fields: Dict[str, Any]) -> Tactic:
    d = tactic.to_dict()
    d.update(fields)
    return Tactic.from_dict(d)


class InMemoryTacticStore(TacticStore):
    """内存战术库 (测试与批量模拟)"""

    def __init__(self, tactics=()):
        self._tactics: Dict[str, Tactic] = {}
        for t in tactics:
            t = t if t.id else Tactic.from_dict({**t.to_dict(), "id": uuid.uuid4().hex})
            self._tactics[t.id] = t

    async def list(self) -> List[Tactic]:
        return list(self._tactics.values())

    async def create(self, tactic: Tactic) -> Tactic:
        created = Tactic.from_dict({**tactic.to_dict(), "id": tactic.id or uuid.uuid4().hex})
        self._tactics[created.id] = created
        return created

    async def update(self, tactic_id: str, fields: Dict[str, Any]) -> Tactic:
        if tactic_id not in self._tactics:
            raise KeyError(tactic_id)
        updated = _apply_fields(self._tactics[tactic_id], fields)
        self._tactics[tactic_id] = updated
        return updated


class InMemoryKnowledgeStore(KnowledgeStore):
    """内存经验库"""

    def __init__(self, records=()):
        self._records: List[KnowledgeRecord] = list(records)

    async def list(self) -> List[KnowledgeRecord]:
        return list(self._records)

    async def append(self, record: KnowledgeRecord) -> None:
        self._records.append(record)


class _JsonFile:
    """JSON 文件读写，I/O 错误统一转为 ExternalStoreUnavailable"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def read(self) -> list:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ExternalStoreUnavailable(f"Cannot read {self.path}: {e}") from e

    def write(self, data: list) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ExternalStoreUnavailable(f"Cannot write {self.path}: {e}") from e


class JsonFileTacticStore(TacticStore):
    """
    JSON 文件战术库

    文件内容为战术文档列表 (Tactic.to_dict 格式)
    """

    def __init__(self, path: Union[str, Path]):
        self._file = _JsonFile(path)

    async def list(self) -> List[Tactic]:
        """没有 id 的文档在读取时补上 id 并写回，之后可以按 id 更新"""
        docs = self._file.read()
        missing = [doc for doc in docs if not doc.get("id")]
        for doc in missing:
            doc["id"] = uuid.uuid4().hex
        if missing:
            self._file.write(docs)
        return [Tactic.from_dict(d) for d in docs]

    async def create(self, tactic: Tactic) -> Tactic:
        docs = self._file.read()
        doc = {**tactic.to_dict(), "id": tactic.id or uuid.uuid4().hex}
        docs.append(doc)
        self._file.write(docs)
        return Tactic.from_dict(doc)

    async def update(self, tactic_id: str, fields: Dict[str, Any]) -> Tactic:
        if not tactic_id:
            raise ExternalStoreUnavailable(f"Cannot update tactic without id in {self._file.path}")
        docs = self._file.read()
        for doc in docs:
            if doc.get("id") == tactic_id:
                doc.update(fields)
                self._file.write(docs)
                return Tactic.from_dict(doc)
        raise KeyError(tactic_id)


class JsonFileKnowledgeStore(KnowledgeStore):
    """JSON 文件经验库"""

    def __init__(self, path: Union[str, Path]):
        self._file = _JsonFile(path)

    async def list(self) -> List[KnowledgeRecord]:
        return [KnowledgeRecord.from_dict(d) for d in self._file.read()]

    async def append(self, record: KnowledgeRecord) -> None:
        docs = self._file.read()
        docs.append(record.to_dict())
        self._file.write(docs)
