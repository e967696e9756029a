# blackboard/utils/item_card.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional

from PIL import Image, ImageDraw, ImageFont

from ..api_client import ItemInfo
from ..i18n import Translator

logger = logging.getLogger(__name__)

QUALITY_COLORS = {
    0: "#9d9d9d",  # poor
    1: "#ffffff",  # common
    2: "#1eff00",  # uncommon
    3: "#0070dd",  # rare
    4: "#a335ee",  # epic
    5: "#ff8000",  # legendary
    6: "#e6cc80",  # artifact
    7: "#00ccff",  # heirloom
}

DEFAULT_TEXT_COLOR = "#d7dadc"
BACKGROUND = "#0d1117"
BORDER = "#2a2f36"

PADDING = 20
ICON_SIZE = 96
WIDTH = 680
LINE_HEIGHT = 24
TITLE_SIZE = 28
TEXT_SIZE = 18


@dataclass
class TooltipLine:
    text: str
    color: Optional[str] = None


def build_tooltip_lines(info: Optional[ItemInfo], t: Translator, guild_id: int) -> List[TooltipLine]:
    if info is None or not info.found:
        return []

    lines: List[TooltipLine] = []
    if info.item_level is not None:
        lines.append(TooltipLine(t(guild_id, "tooltip.itemLevel", n=info.item_level), "#ffd100"))

    if info.item_subclass and info.inventory_type:
        lines.append(TooltipLine(f"{info.item_subclass}, {info.inventory_type}", "#00a8ff"))
    elif info.item_class:
        lines.append(TooltipLine(info.item_class, "#00a8ff"))

    for text in (info.binding, info.durability_text, info.damage_text, info.speed_text, info.armor_text):
        if text:
            lines.append(TooltipLine(text))

    for stat in info.stats:
        lines.append(TooltipLine(stat, "#1eff00"))

    if info.equip_text:
        lines.append(TooltipLine(info.equip_text, "#00ff98"))
    if info.use_text:
        lines.append(TooltipLine(info.use_text, "#1eff00"))
    if info.socket_bonus:
        lines.append(TooltipLine(f"{t(guild_id, 'tooltip.socketBonus')}: {info.socket_bonus}", "#00ff98"))
    if info.required_level:
        lines.append(TooltipLine(t(guild_id, "tooltip.requiresLevel", n=info.required_level)))
    if info.max_stack is not None:
        lines.append(TooltipLine(t(guild_id, "tooltip.maxStack", n=info.max_stack)))
    return lines


def format_price(copper: Optional[int]) -> Optional[str]:
    if copper is None or copper <= 0:
        return None
    g, rest = divmod(int(copper), 10000)
    s, c = divmod(rest, 100)
    bits = []
    if g:
        bits.append(f"{g}g")
    if s:
        bits.append(f"{s}s")
    if c:
        bits.append(f"{c}c")
    return " ".join(bits)


def _font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> List[str]:
    words = (text or "").split()
    lines: List[str] = []
    cur = ""
    for w in words:
        test = f"{cur} {w}" if cur else w
        if draw.textlength(test, font=font) > max_width and cur:
            lines.append(cur)
            cur = w
        else:
            cur = test
    if cur:
        lines.append(cur)
    return lines or [""]


def render_item_card(
        title: str,
        tooltip_lines: List[TooltipLine],
        price_text: Optional[str] = None,
        icon: Optional[bytes] = None,
        quality: Optional[int] = None,
) -> bytes:
    """Draws the tooltip card and returns PNG bytes."""
    title_font = _font(TITLE_SIZE)
    text_font = _font(TEXT_SIZE)

    text_x = PADDING + ICON_SIZE + 16
    max_text_w = WIDTH - text_x - PADDING

    measure = ImageDraw.Draw(Image.new("RGB", (1, 1)))
    wrapped: List[tuple[str, str]] = []
    for line in tooltip_lines:
        for part in _wrap(measure, line.text, text_font, max_text_w):
            wrapped.append((part, line.color or DEFAULT_TEXT_COLOR))
    if price_text:
        wrapped.append((price_text, "#ffd700"))

    height = max(
        ICON_SIZE + PADDING * 2,
        PADDING + TITLE_SIZE + 16 + len(wrapped) * LINE_HEIGHT + PADDING,
    )

    img = Image.new("RGB", (WIDTH, height), BACKGROUND)
    draw = ImageDraw.Draw(img)
    draw.rounded_rectangle((0, 0, WIDTH - 1, height - 1), radius=14, outline=BORDER, width=2)

    if icon:
        try:
            icon_img = Image.open(BytesIO(icon)).convert("RGB").resize((ICON_SIZE, ICON_SIZE))
            img.paste(icon_img, (PADDING, (height - ICON_SIZE) // 2))
        except Exception as e:
            logger.warning("Icon could not be decoded: %s", e)

    title_color = QUALITY_COLORS.get(quality if quality is not None else 1, "#ffffff")
    draw.text((text_x, PADDING), title, font=title_font, fill=title_color)

    y = PADDING + TITLE_SIZE + 16
    for text, color in wrapped:
        draw.text((text_x, y), text, font=text_font, fill=color)
        y += LINE_HEIGHT

    out = BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()
