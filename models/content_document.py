from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List
import copy
import time

IMAGE_BLOCK_TYPE = "image"
DEFAULT_EDITOR_VERSION = "2.28.2"


@dataclass(frozen=True)
class Block:
    """One addressable unit of a block-structured document."""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    id: str | None = None

    @property
    def is_image(self) -> bool:
        return self.type == IMAGE_BLOCK_TYPE

    @property
    def file(self) -> Dict[str, Any]:
        file_data = self.data.get("file") if isinstance(self.data, dict) else None
        return file_data if isinstance(file_data, dict) else {}

    @property
    def pending_id(self) -> str | None:
        return self.file.get("pendingId") if self.is_image else None

    @property
    def final_url(self) -> str | None:
        return self.file.get("url") if self.is_image else None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> Block:
        return cls(
            type=raw.get("type", ""),
            data=copy.deepcopy(raw.get("data") or {}),
            id=raw.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        raw: Dict[str, Any] = {"type": self.type, "data": copy.deepcopy(self.data)}
        if self.id is not None:
            raw["id"] = self.id
        return raw


@dataclass(frozen=True)
class ContentDocument:
    """
    Ordered sequence of blocks, mirroring the editor wire shape
    `{blocks: [...], time: number, version: string}`.
    """
    blocks: List[Block] = field(default_factory=list)
    time: int = field(default_factory=lambda: int(time.time() * 1000))
    version: str = DEFAULT_EDITOR_VERSION

    @classmethod
    def from_dict(cls, raw: Dict[str, Any] | None) -> ContentDocument:
        raw = raw or {}
        return cls(
            blocks=[Block.from_dict(b) for b in raw.get("blocks") or []],
            time=raw.get("time", int(time.time() * 1000)),
            version=raw.get("version", DEFAULT_EDITOR_VERSION),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blocks": [b.to_dict() for b in self.blocks],
            "time": self.time,
            "version": self.version,
        }

    @property
    def image_blocks(self) -> List[Block]:
        return [b for b in self.blocks if b.is_image]


def image_block(*, url: str | None = None, pending_id: str | None = None,
                caption: str = "", **extra) -> Block:
    """Helper used by callers (and tests) to build an image block."""
    file_data: Dict[str, Any] = {}
    if url is not None:
        file_data["url"] = url
    if pending_id is not None:
        file_data["pendingId"] = pending_id
    data = {"file": file_data, "caption": caption, **extra}
    return Block(type=IMAGE_BLOCK_TYPE, data=data)
