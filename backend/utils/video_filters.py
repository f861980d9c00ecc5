"""
FFmpeg filter fragments for the video editor.

Colour presets, playback speed and text overlays are all expressed here as
filter strings; the command builder joins them into -vf / -af chains.
"""

from __future__ import annotations

from dataclasses import dataclass


VIDEO_FILTERS: dict[str, str | None] = {
    "none": None,
    "vintage": "colorbalance=rs=0.2:gs=-0.05:bs=-0.15,curves=master=0/0.05 1/0.95",
    "blackAndWhite": "colorchannelmixer=.3:.4:.3:0:.3:.4:.3:0:.3:.4:.3,eq=contrast=1.1",
    "warm": "colorbalance=rs=0.12:gs=0.05:bs=-0.08",
    "cool": "colorbalance=rs=-0.08:gs=0:bs=0.12",
    "highContrast": "eq=contrast=1.35:saturation=1.2",
    "fade": "curves=master=0/0.1 1/0.9,eq=saturation=0.9",
    "cinema": "colorbalance=rs=0.05:gs=-0.03:bs=0.08,eq=contrast=1.15:saturation=1.1:brightness=-0.02",
    "vivid": "eq=saturation=1.5:contrast=1.1:brightness=0.05",
    "moody": "eq=brightness=-0.1:contrast=1.2:saturation=0.85,colorbalance=rs=0.03:gs=-0.02:bs=0.05",
    "sunset": "colorbalance=rs=0.18:gs=0.08:bs=-0.1,eq=saturation=1.3:brightness=0.05",
    "noir": "colorchannelmixer=.3:.4:.3:0:.3:.4:.3:0:.3:.4:.3,eq=contrast=1.4:brightness=-0.05",
}


@dataclass(frozen=True)
class FontOption:
    id: str
    font_family: str
    ffmpeg_font: str


FONT_OPTIONS: tuple[FontOption, ...] = (
    FontOption("sans", "sans-serif", "Arial"),
    FontOption("serif", "serif", "Times New Roman"),
    FontOption("mono", "monospace", "Courier New"),
    FontOption("impact", "Impact, sans-serif", "Impact"),
    FontOption("comic", '"Comic Sans MS", cursive', "Comic Sans MS"),
)

ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0


@dataclass(frozen=True)
class SpeedFilters:
    video: str | None
    audio: str | None


def format_number(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return f"{number:.6f}".rstrip("0").rstrip(".")


def get_ffmpeg_filter(preset: str | None) -> str | None:
    if not preset:
        return None
    return VIDEO_FILTERS.get(preset)


def build_atempo_chain(tempo: float) -> list[str]:
    if tempo <= 0:
        raise ValueError(f"Speed must be positive, got {tempo}")
    filters: list[str] = []
    while tempo < ATEMPO_MIN or tempo > ATEMPO_MAX:
        if tempo < ATEMPO_MIN:
            filters.append(f"atempo={format_number(ATEMPO_MIN)}")
            tempo /= ATEMPO_MIN
        else:
            filters.append(f"atempo={format_number(ATEMPO_MAX)}")
            tempo /= ATEMPO_MAX
    if abs(tempo - 1.0) > 1e-9:
        filters.append(f"atempo={format_number(tempo)}")
    return filters


def get_speed_filters(speed: float) -> SpeedFilters:
    if speed <= 0:
        raise ValueError(f"Speed must be positive, got {speed}")
    if speed == 1:
        return SpeedFilters(video=None, audio=None)

    video = f"setpts={format_number(1 / speed)}*PTS"
    audio = ",".join(build_atempo_chain(speed)) or None
    return SpeedFilters(video=video, audio=audio)


def escape_drawtext(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace(":", "\\:")
        .replace("\n", "\\n")
    )


def resolve_font(font_family: str | None) -> str | None:
    if not font_family:
        return None
    for option in FONT_OPTIONS:
        if font_family in (option.font_family, option.id, option.ffmpeg_font):
            return option.ffmpeg_font
    return None


def _hex_color(value: str) -> str:
    return "0x" + value.strip().lstrip("#")


def generate_drawtext_filter(
    text: str,
    x: float,
    y: float,
    font_size: int,
    font_color: str,
    font_family: str | None = None,
    start_time: float | None = None,
    end_time: float | None = None,
    background_color: str | None = None,
) -> str:
    """Build a drawtext filter; x and y are percentages of the frame size."""
    parts = [
        f"drawtext=text='{escape_drawtext(text)}'",
        f"fontsize={font_size}",
        f"fontcolor={_hex_color(font_color)}",
        f"x=(w*{format_number(x / 100)})",
        f"y=(h*{format_number(y / 100)})",
    ]

    font = resolve_font(font_family)
    if font:
        parts.append(f"font='{font}'")

    if start_time is not None or end_time is not None:
        start = format_number(start_time or 0)
        if end_time is not None:
            parts.append(f"enable='between(t,{start},{format_number(end_time)})'")
        else:
            parts.append(f"enable='gte(t,{start})'")

    if background_color:
        parts.append(f"box=1:boxcolor={_hex_color(background_color)}@0.7:boxborderw=8")

    return ":".join(parts)
