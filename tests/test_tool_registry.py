from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from app.tools.builtins.current_time import get_current_time
from app.tools.entity.tool import ToolContext, ToolDefinition, ToolParameters, ToolProperty
from app.tools.service.registry import ToolNotFoundError, ToolRegistry

CONTEXT = ToolContext(default_timezone="UTC")
NOON_UTC = datetime(2024, 1, 15, 12, 30, 45, tzinfo=ZoneInfo("UTC"))


def make_tool(name="echo", executor=None, ephemeral=False):
    return ToolDefinition(
        name=name,
        description=f"{name} tool",
        parameters=ToolParameters(properties={"text": ToolProperty(type="string", description="text")}, required=["text"]),
        executor=executor or (lambda args, ctx: args.get("text", "")),
        ephemeral=ephemeral,
    )


def test_last_registration_wins():
    registry = ToolRegistry()
    registry.register(make_tool(executor=lambda a, c: "first"))
    registry.register(make_tool(executor=lambda a, c: "second", ephemeral=True))

    assert len(registry.list_all()) == 1
    assert registry.is_ephemeral("echo")


def test_definitions_for_provider_shape():
    registry = ToolRegistry()
    registry.register(make_tool())

    [spec] = registry.definitions_for_provider()
    assert spec.name == "echo"
    assert spec.description == "echo tool"
    assert spec.parameters == {
        "type": "object",
        "properties": {"text": {"type": "string", "description": "text"}},
        "required": ["text"],
    }


@pytest.mark.asyncio
async def test_execute_sync_and_async_executors():
    async def shout(args, ctx):
        return args["text"].upper()

    registry = ToolRegistry()
    registry.register(make_tool())
    registry.register(make_tool("shout", executor=shout))

    assert (await registry.execute("echo", {"text": "hi"}, CONTEXT)).content == "hi"
    assert (await registry.execute("shout", {"text": "hi"}, CONTEXT)).content == "HI"


@pytest.mark.asyncio
async def test_structured_results_are_stringified_as_json():
    registry = ToolRegistry()
    registry.register(make_tool("data", executor=lambda a, c: {"city": "上海", "temp": 21}))
    result = await registry.execute("data", {}, CONTEXT)
    assert result.content == '{"city": "上海", "temp": 21}'


@pytest.mark.asyncio
async def test_executor_exception_becomes_failed_result():
    def boom(args, ctx):
        raise RuntimeError("kaboom")

    registry = ToolRegistry()
    registry.register(make_tool("boom", executor=boom, ephemeral=True))

    result = await registry.execute("boom", {}, CONTEXT)
    assert not result.ok
    assert result.content == "Tool 'boom' failed: kaboom"
    assert result.ephemeral


@pytest.mark.asyncio
async def test_unknown_tool_raises():
    with pytest.raises(ToolNotFoundError):
        await ToolRegistry().execute("missing", {}, CONTEXT)


def test_is_ephemeral_for_unknown_tool_is_false():
    assert not ToolRegistry().is_ephemeral("missing")


@pytest.mark.parametrize(
    "args,expected",
    [
        ({}, "2024-01-15 Monday 12:30:45 (UTC)"),
        ({"timezone": "Asia/Shanghai"}, "2024-01-15 Monday 20:30:45 (Asia/Shanghai)"),
        ({"timezone": "Asia/Shanghai", "format": "time"}, "20:30:45 (Asia/Shanghai)"),
        ({"format": "date"}, "2024-01-15 Monday (UTC)"),
        ({"format": "weird"}, "2024-01-15 Monday 12:30:45 (UTC)"),
    ],
)
def test_current_time_formats(args, expected):
    assert get_current_time(args, CONTEXT, now=NOON_UTC) == expected


def test_current_time_rejects_unknown_timezone():
    with pytest.raises(ValueError):
        get_current_time({"timezone": "Mars/Olympus"}, CONTEXT, now=NOON_UTC)


@pytest.mark.asyncio
async def test_builtin_time_tool_is_ephemeral(registry):
    assert registry.is_ephemeral("get_current_time")
    result = await registry.execute("get_current_time", {"format": "date"}, CONTEXT)
    assert result.ok
    assert result.ephemeral
    assert result.content.endswith("(UTC)")


@pytest.mark.asyncio
async def test_builtin_time_tool_bad_timezone_is_a_failed_result(registry):
    result = await registry.execute("get_current_time", {"timezone": "Nowhere/Land"}, CONTEXT)
    assert not result.ok
    assert "Unknown timezone" in result.content
