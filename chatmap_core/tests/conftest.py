import asyncio
import json
from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from chatmap_core.config.endpoint import parse_endpoint_config


class SettingsStub:
    strict_location_validation = False
    max_history_messages = 20
    http_timeout = 1.0


def sse(*contents: str, done: bool = True) -> List[str]:
    lines = []
    for c in contents:
        chunk = {"choices": [{"index": 0, "delta": {"content": c}}]}
        lines.append("data: " + json.dumps(chunk, ensure_ascii=False))
        lines.append("")
    if done:
        lines.append("data: [DONE]")
    return lines


def extraction(task_type: str, locations: list, text: str = "") -> str:
    return json.dumps({"task_type": task_type, "text": text, "locations": locations}, ensure_ascii=False)


BEIJING_SIGHTS = [
    {"id": "1", "title": "故宫", "description": "中国明清两代的皇家宫殿", "latitude": 39.9163, "longitude": 116.3972},
    {"id": "2", "title": "天安门广场", "description": "世界上最大的城市广场之一", "latitude": 39.9054, "longitude": 116.3976},
    {"id": "3", "title": "颐和园", "description": "北京著名景点", "latitude": 39.9988, "longitude": 116.2752},
    {"id": "4", "title": "长城", "description": "北京著名景点", "latitude": 40.4319, "longitude": 116.5704},
]

BEIJING_SHANGHAI_ROUTE = [
    {"id": "1", "title": "故宫", "description": "北京景点", "latitude": 39.9163, "longitude": 116.3972},
    {"id": "2", "title": "长城", "description": "北京景点", "latitude": 40.4319, "longitude": 116.5704},
    {"id": "3", "title": "拙政园", "description": "苏州景点", "latitude": 31.3242, "longitude": 120.6293},
    {"id": "4", "title": "外滩", "description": "上海景点", "latitude": 31.2304, "longitude": 121.4904},
    {"id": "5", "title": "东方明珠", "description": "上海景点", "latitude": 31.2396, "longitude": 121.4998},
]


@dataclass
class FakeReply:
    lines: List[str]
    content: str = ""
    # 设置后，流在产出 hold_after 行之后等待该事件
    stream_gate: Optional[asyncio.Event] = None
    hold_after: int = 0
    extract_gate: Optional[asyncio.Event] = None
    extract_error: Optional[Exception] = None
    stream_closed: bool = field(default=False)


class FakeEndpoint:
    name = "fake"

    def __init__(self, *replies: FakeReply):
        self.replies = list(replies)
        self.stream_calls: List[list] = []
        self.extract_calls: List[list] = []

    async def stream_lines(self, messages, config):
        reply = self.replies[len(self.stream_calls)]
        self.stream_calls.append(list(messages))
        try:
            for index, line in enumerate(reply.lines):
                if reply.stream_gate is not None and index == reply.hold_after:
                    await reply.stream_gate.wait()
                yield line
        finally:
            reply.stream_closed = True

    async def chat_json(self, messages, config):
        reply = self.replies[len(self.extract_calls)]
        self.extract_calls.append(list(messages))
        if reply.extract_gate is not None:
            await reply.extract_gate.wait()
        if reply.extract_error is not None:
            raise reply.extract_error
        return reply.content


@pytest.fixture
def endpoint_config():
    return parse_endpoint_config({"provider": "openai", "api_key": "sk-test-123456"})
