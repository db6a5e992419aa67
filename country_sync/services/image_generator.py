import os
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional, Sequence, Union

import PIL
from PIL import Image, ImageDraw, ImageFont

from country_sync.schemas import CountrySummary

Number = Union[int, float, Decimal]

# Canvas
WIDTH, HEIGHT = 800, 480
BG = (255, 255, 255)
FG = (34, 34, 34)
MUTED = (100, 100, 100)
GRID = (225, 230, 240)
HEADER_BG = (245, 247, 250)
STRIPE = (252, 253, 255)
ACCENT = (60, 99, 243)


def _resolve_font(filename: str, size: int):
    base = Path(PIL.__file__).parent
    for candidate in (base / filename, base / "fonts" / filename, base.parent / filename):
        if candidate.exists():
            return ImageFont.truetype(str(candidate), size)
    return ImageFont.load_default()


def _text_width(draw: ImageDraw.ImageDraw, text: str, font) -> int:
    left, _, right, _ = draw.textbbox((0, 0), text, font=font)
    return int(right - left)


def format_compact_gdp(value: Optional[Number]) -> str:
    """Render a GDP figure as $1.2B style text; '-' when unknown."""
    if value is None:
        return "-"
    n = float(value)
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs(n) >= threshold:
            scaled = f"{n / threshold:.1f}".rstrip("0").rstrip(".")
            return f"${scaled}{suffix}"
    return f"${n:,.0f}"


def format_timestamp(timestamp: datetime) -> str:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


class SummaryImageRenderer:
    """Writes the refresh summary as a single PNG, overwriting the last one."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get_artifact_path(self) -> Path:
        return self.path

    def generate_summary_image(
        self, total: int, top_countries: Sequence[CountrySummary], timestamp: datetime
    ) -> Path:
        os.makedirs(self.path.parent, exist_ok=True)

        img = Image.new("RGB", (WIDTH, HEIGHT), color=BG)
        draw = ImageDraw.Draw(img)
        font_title = _resolve_font("DejaVuSans-Bold.ttf", 20)
        font_meta = _resolve_font("DejaVuSans.ttf", 15)
        font_header = _resolve_font("DejaVuSans-Bold.ttf", 15)
        font_cell = _resolve_font("DejaVuSans.ttf", 15)

        margin = 24
        y = margin
        draw.text((margin, y), "Country Currency & Exchange Summary", fill=ACCENT, font=font_title)
        y += 30
        meta = f"Total Countries: {total}   Last Refresh: {format_timestamp(timestamp)}"
        draw.text((margin, y), meta, fill=MUTED, font=font_meta)
        y += 34

        # Rank | Country | Region | Estimated GDP
        left, right = margin, WIDTH - margin
        row_h, header_h = 38, 40
        x_rank = left
        x_country = x_rank + 60
        x_region = x_country + 300
        x_gdp_right = right - 12

        draw.rectangle([left, y, right, y + header_h], fill=HEADER_BG)
        draw.text((x_rank + 12, y + 11), "#", fill=FG, font=font_header)
        draw.text((x_country + 12, y + 11), "Country", fill=FG, font=font_header)
        draw.text((x_region + 12, y + 11), "Region", fill=FG, font=font_header)
        gdp_header = "Estimated GDP"
        draw.text((x_gdp_right - _text_width(draw, gdp_header, font_header), y + 11), gdp_header, fill=FG, font=font_header)
        table_top = y
        y += header_h
        draw.line([left, y, right, y], fill=GRID, width=1)

        rows = list(top_countries)
        if not rows:
            draw.text((x_country + 12, y + 10), "No GDP data available", fill=MUTED, font=font_cell)
            y += row_h
        for rank, country in enumerate(rows, start=1):
            if rank % 2:
                draw.rectangle([left, y, right, y + row_h], fill=STRIPE)
            gdp = format_compact_gdp(country.estimated_gdp)
            draw.text((x_rank + 12, y + 10), str(rank), fill=FG, font=font_cell)
            draw.text((x_country + 12, y + 10), country.name, fill=FG, font=font_cell)
            draw.text((x_region + 12, y + 10), country.region or "-", fill=FG, font=font_cell)
            draw.text((x_gdp_right - _text_width(draw, gdp, font_cell), y + 10), gdp, fill=FG, font=font_cell)
            y += row_h
            draw.line([left, y, right, y], fill=GRID, width=1)

        draw.rectangle([left, table_top, right, y], outline=GRID, width=1)
        draw.text(
            (margin, y + 16),
            "Data sources: Rest Countries API, Exchange Rates API",
            fill=MUTED,
            font=font_meta,
        )

        img.save(str(self.path), format="PNG")
        return self.path
