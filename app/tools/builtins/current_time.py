from datetime import datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.tools.entity.tool import ToolContext, ToolDefinition, ToolParameters, ToolProperty

TIME_FORMATS = {
    "full": "%Y-%m-%d %A %H:%M:%S",
    "time": "%H:%M:%S",
    "date": "%Y-%m-%d %A",
}


def get_current_time(args: Dict[str, Any], context: ToolContext, now: Optional[datetime] = None) -> str:
    timezone_name = args.get("timezone") or context.default_timezone
    fmt = args.get("format") or "full"
    if fmt not in TIME_FORMATS:
        fmt = "full"

    try:
        tz = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {timezone_name}") from e

    moment = (now or datetime.now(tz)).astimezone(tz)
    return f"{moment.strftime(TIME_FORMATS[fmt])} ({timezone_name})"


current_time_tool = ToolDefinition(
    name="get_current_time",
    description=(
        "Get the current time. Use this tool when the user asks what time it is, "
        "the current date, the day of the week or anything else about the present time."
    ),
    parameters=ToolParameters(
        properties={
            "timezone": ToolProperty(
                type="string",
                description="IANA timezone, defaults to the server's configured timezone (e.g. Asia/Shanghai)",
            ),
            "format": ToolProperty(
                type="string",
                description="Output format: 'full' (date and time), 'time' (time only), 'date' (date only)",
                enum=["full", "time", "date"],
            ),
        },
        required=[],
    ),
    executor=get_current_time,
    # the answer decays immediately; it must not anchor later turns
    ephemeral=True,
)
