"""
Deterministic renderer: computed layout -> SVG.

The output is a flat document (no groups, styles or markers) so it stays easy to
edit in drawing tools. Every element carries a sanitized id derived from the
individuals it belongs to.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from .layout import LayoutSettings, Placement, compute_layout
from .models import Individual, Pedigree, int_to_roman
from .resolver import couples, marriage_info_for, parents_of, sibling_groups, twin_pairs_within


@dataclass
class SvgStyle:
    symbol_size: float = 40.0
    stroke_width: float = 2.0
    font_family: str = "Arial, Helvetica, sans-serif"
    margin_x: float = 60.0
    margin_y: float = 60.0
    sibship_drop: float = 50.0  # sibship line distance below the parents' row
    adopted_dash: str = "4,4"
    separated_dash: str = "4,2"
    show_date: bool = True


class SvgChart:
    def __init__(self, pedigree: Pedigree, placements: Dict[str, Placement], style: Optional[SvgStyle] = None, today: Optional[date] = None):
        self.pedigree = pedigree
        self.placements = placements
        self.style = style or SvgStyle()
        self.today = today

    # ---------- geometry ----------
    def _pos(self, ind: Individual) -> Tuple[float, float]:
        p = self.placements[ind.id]
        return p.x, p.y

    def _placed(self, individuals) -> List[Individual]:
        return [ind for ind in individuals if ind.id in self.placements]

    def _bounds(self) -> Tuple[float, float, float, float]:
        s = self.style
        if not self.placements:
            return (0.0, 0.0, 2 * s.margin_x, 2 * s.margin_y)
        xs = [p.x for p in self.placements.values()]
        ys = [p.y for p in self.placements.values()]
        min_x = min(xs) - s.symbol_size - s.margin_x
        min_y = min(ys) - s.symbol_size - s.margin_y
        max_x = max(xs) + s.symbol_size + s.margin_x
        max_y = max(ys) + s.symbol_size + s.margin_y + 60
        return (min_x, min_y, max_x - min_x, max_y - min_y)

    # ---------- document ----------
    def render(self) -> str:
        min_x, min_y, width, height = self._bounds()
        svg = ET.Element(
            "svg",
            {
                "xmlns": "http://www.w3.org/2000/svg",
                "version": "1.1",
                "width": str(int(width)),
                "height": str(int(height)),
                "viewBox": f"{min_x} {min_y} {width} {height}",
            },
        )
        self._draw_generation_labels(svg, min_x, width)
        if self.style.show_date:
            created = (self.today or date.today()).isoformat()
            self._text(svg, min_x + width - 8, min_y + height - 10, created, self._sid("meta"), size=12, anchor="end", fill="#666")

        individuals = self._placed(self.pedigree)
        for a, b in couples(individuals):
            self._draw_marriage_line(svg, a, b)
        for generation in self.pedigree.generations():
            groups, _ = sibling_groups(self._placed(self.pedigree.in_generation(generation)))
            for _, members in groups:
                self._draw_sibship(svg, members)
        for ind in individuals:
            self._draw_person(svg, ind)
        return ET.tostring(svg, encoding="unicode")

    def save(self, filename="pedigree.svg") -> str:
        Path(filename).write_text(self.render(), encoding="utf-8")
        return str(filename)

    # ---------- primitives ----------
    def _line(self, parent: ET.Element, x1: float, y1: float, x2: float, y2: float, lid: str, dash: Optional[str] = None, color: str = "#000") -> ET.Element:
        attrs = {
            "id": lid,
            "x1": str(x1),
            "y1": str(y1),
            "x2": str(x2),
            "y2": str(y2),
            "stroke": color,
            "stroke-width": str(self.style.stroke_width),
            "fill": "none",
        }
        if dash:
            attrs["stroke-dasharray"] = dash
        return ET.SubElement(parent, "line", attrs)

    def _text(self, parent: ET.Element, x: float, y: float, text: str, tid: str, size: int = 12, anchor: str = "middle", fill: str = "#000") -> None:
        t = ET.SubElement(
            parent,
            "text",
            {
                "id": tid,
                "x": str(x),
                "y": str(y),
                "font-size": str(size),
                "text-anchor": anchor,
                "font-family": self.style.font_family,
                "fill": fill,
            },
        )
        t.text = text

    # ---------- rows ----------
    def _draw_generation_labels(self, parent: ET.Element, min_x: float, width: float) -> None:
        rows: Dict[int, float] = {}
        for ind in self._placed(self.pedigree):
            rows.setdefault(ind.generation, self.placements[ind.id].y)
        for gen in sorted(rows):
            y = rows[gen]
            label = int_to_roman(gen)
            self._line(parent, min_x + 40, y, min_x + width - 10, y, self._sid("genline", label), dash="2,6", color="#ccc")
            self._text(parent, min_x + 10, y + 5, label, self._sid("gen", label), size=14, anchor="start", fill="#666")

    # ---------- couples ----------
    def _draw_marriage_line(self, parent: ET.Element, a: Individual, b: Individual) -> None:
        (ax, ay), (bx, by) = self._pos(a), self._pos(b)
        half = self.style.symbol_size / 2
        y = min(ay, by)
        if ax <= bx:
            x1, x2 = ax + half, bx - half
        else:
            x1, x2 = ax - half, bx + half
        info = marriage_info_for(self.pedigree, a)
        status = info.status if info is not None else "married"
        dash = self.style.separated_dash if status == "separated" else None
        self._line(parent, x1, y, x2, y, self._sid("spouse", status, a.id, b.id), dash=dash)
        if info is not None and info.double_line:
            self._line(parent, x1, y + 6, x2, y + 6, self._sid("spouse", "consanguinity2", a.id, b.id))
        if status == "divorced":
            mid_x = (x1 + x2) / 2
            for i, offset in enumerate((-6.0, 6.0), start=1):
                self._line(parent, mid_x + offset + 4, y - 10, mid_x + offset - 4, y + 10, self._sid("divorce", str(i), a.id, b.id))

        kind = a.no_offspring or b.no_offspring
        if kind:
            mid_x = (x1 + x2) / 2
            bar_y = y + 22
            self._line(parent, mid_x, y, mid_x, bar_y, self._sid("nooffspring", a.id, b.id))
            self._line(parent, mid_x - 8, bar_y, mid_x + 8, bar_y, self._sid("nooffspring", "bar1", a.id, b.id))
            if kind == "infertility":
                self._line(parent, mid_x - 8, bar_y + 4, mid_x + 8, bar_y + 4, self._sid("nooffspring", "bar2", a.id, b.id))

    # ---------- descent ----------
    def _draw_sibship(self, parent: ET.Element, members: List[Individual]) -> None:
        parents = self._placed(parents_of(self.pedigree, members[0]))
        if not parents:
            return
        half = self.style.symbol_size / 2
        parent_y = min(self._pos(p)[1] for p in parents)
        top_x = sum(self._pos(p)[0] for p in parents) / len(parents)
        # A lone parent drops from its own symbol rather than from a marriage line.
        top_y = parent_y + half if len(parents) == 1 else parent_y
        key = "_".join(p.id for p in parents)

        if len(members) == 1 and len(parents) == 2:
            child = members[0]
            cx, cy = self._pos(child)
            self._line(parent, cx, parent_y, cx, cy - half, self._sid("descent", key, child.id), dash=self._adopted_dash(child))
            return

        line_y = parent_y + self.style.sibship_drop
        self._line(parent, top_x, top_y, top_x, line_y, self._sid("down", key))

        drops: List[float] = []
        twinned = set()
        for left, right in twin_pairs_within(members):
            anchor = self.placements[left.id].twin_anchor
            ax = anchor.x if anchor is not None else (self._pos(left)[0] + self._pos(right)[0]) / 2
            drops.append(ax)
            for twin in (left, right):
                tx, ty = self._pos(twin)
                self._line(parent, ax, line_y, tx, ty - half, self._sid("twin", twin.id), dash=self._adopted_dash(twin))
                twinned.add(twin.id)
            if anchor is not None and anchor.identical and anchor.bar is not None:
                bar_y = line_y + (self._pos(left)[1] - half - line_y) / 2
                # Tethers are straight, so the bar endpoints sit halfway along each one.
                bx1 = (ax + anchor.bar[0]) / 2
                bx2 = (ax + anchor.bar[1]) / 2
                self._line(parent, bx1, bar_y, bx2, bar_y, self._sid("twinbar", left.id, right.id))

        for sib in members:
            if sib.id in twinned:
                continue
            sx, sy = self._pos(sib)
            drops.append(sx)
            self._line(parent, sx, line_y, sx, sy - half, self._sid("child", sib.id), dash=self._adopted_dash(sib))

        if drops:
            left_x = min(drops + [top_x])
            right_x = max(drops + [top_x])
            self._line(parent, left_x, line_y, right_x, line_y, self._sid("sibship", key))

    def _adopted_dash(self, ind: Individual) -> Optional[str]:
        if ind.is_adopted and ind.adopted_direction == "in":
            return self.style.adopted_dash
        return None

    # ---------- individuals ----------
    def _draw_person(self, parent: ET.Element, person: Individual) -> None:
        cx, cy = self._pos(person)
        half = self.style.symbol_size / 2
        fill = "#000" if person.affected else "none"
        inner = "#fff" if person.affected else "#000"

        if person.is_pregnancy_loss:
            points = [(cx, cy - half * 0.9), (cx + half * 0.9, cy + half * 0.9), (cx - half * 0.9, cy + half * 0.9)]
            ET.SubElement(
                parent,
                "polygon",
                {
                    "id": self._sid("sym", person.id),
                    "points": " ".join(f"{x},{y}" for x, y in points),
                    "fill": fill,
                    "stroke": "#000",
                    "stroke-width": str(self.style.stroke_width),
                },
            )
            if person.is_termination:
                self._line(parent, cx - half * 0.8, cy + half * 0.8, cx + half * 0.8, cy - half * 0.8, self._sid("slash", person.id), color=inner)
        else:
            self._draw_gender_symbol(parent, person, cx, cy, fill=fill)
            if person.is_pregnancy:
                self._text(parent, cx, cy + 5, "P", self._sid("pregnancy", person.id), size=14, fill=inner)

        if person.carrier and not person.affected:
            ET.SubElement(
                parent,
                "circle",
                {"id": self._sid("carrier", person.id), "cx": str(cx), "cy": str(cy), "r": "4", "fill": "#000", "stroke": "none"},
            )
        if person.deceased:
            self._line(parent, cx - half - 6, cy + half + 6, cx + half + 6, cy - half - 6, self._sid("deceased", person.id))
        if person.is_adopted:
            self._draw_adoption_brackets(parent, person, cx, cy)
        if person.id == self.pedigree.proband_id:
            length = 18.0
            start_x, start_y = cx - half - length, cy + half + length
            self._draw_arrow(parent, start_x, start_y, cx - half - 2, cy + half + 2, arrow_id=self._sid("arrow", person.id))
            self._text(parent, start_x - 4, start_y + 10, "P", self._sid("proband", person.id))

        self._text(parent, cx + half + 4, cy - half - 2, person.id, self._sid("label", person.id), size=10, anchor="start", fill="#666")
        below = [line for line in (person.name, person.age, person.conditions) if line]
        for idx, line in enumerate(below):
            self._text(parent, cx, cy + half + 16 + idx * 14, line, self._sid("text", person.id, str(idx)), size=11)

    def _draw_gender_symbol(self, parent: ET.Element, person: Individual, cx: float, cy: float, *, fill: str) -> None:
        s = self.style.symbol_size
        half = s / 2
        common = {"id": self._sid("sym", person.id), "fill": fill, "stroke": "#000", "stroke-width": str(self.style.stroke_width)}
        if person.gender == "male":
            ET.SubElement(parent, "rect", dict(common, x=str(cx - half), y=str(cy - half), width=str(s), height=str(s)))
        elif person.gender == "female":
            ET.SubElement(parent, "circle", dict(common, cx=str(cx), cy=str(cy), r=str(half)))
        else:
            points = [(cx, cy - half), (cx + half, cy), (cx, cy + half), (cx - half, cy)]
            ET.SubElement(parent, "polygon", dict(common, points=" ".join(f"{x},{y}" for x, y in points)))

    def _draw_adoption_brackets(self, parent: ET.Element, person: Individual, cx: float, cy: float) -> None:
        half = self.style.symbol_size / 2
        pad = 6.0
        cap = 10.0
        dash = self._adopted_dash(person)
        left_x, right_x = cx - half - pad, cx + half + pad
        top_y, bot_y = cy - half - pad, cy + half + pad
        for suffix, coords in (
            ("L", (left_x, top_y, left_x, bot_y)),
            ("LT", (left_x, top_y, left_x + cap, top_y)),
            ("LB", (left_x, bot_y, left_x + cap, bot_y)),
            ("R", (right_x, top_y, right_x, bot_y)),
            ("RT", (right_x - cap, top_y, right_x, top_y)),
            ("RB", (right_x - cap, bot_y, right_x, bot_y)),
        ):
            self._line(parent, *coords, self._sid("adopt", person.id, suffix), dash=dash)

    def _draw_arrow(self, parent: ET.Element, x1: float, y1: float, x2: float, y2: float, *, arrow_id: str) -> None:
        self._line(parent, x1, y1, x2, y2, arrow_id + "_shaft")
        dx, dy = x2 - x1, y2 - y1
        length = math.hypot(dx, dy)
        if length <= 1e-6:
            return
        ux, uy = dx / length, dy / length
        head_len, head_w = 10.0, 7.0
        bx, by = x2 - ux * head_len, y2 - uy * head_len
        px, py = -uy, ux
        head = ((x2, y2), (bx + px * head_w / 2, by + py * head_w / 2), (bx - px * head_w / 2, by - py * head_w / 2))
        ET.SubElement(
            parent,
            "polygon",
            {"id": arrow_id + "_head", "points": " ".join(f"{x},{y}" for x, y in head), "fill": "#000", "stroke": "none"},
        )

    @staticmethod
    def _sid(*parts: str) -> str:
        s = "_".join(str(p) for p in parts if p is not None and str(p) != "")
        return "".join(ch if ch.isalnum() or ch in ("_", "-") else "_" for ch in s)[:180]


def render_svg(
    pedigree: Pedigree,
    placements: Optional[Dict[str, Placement]] = None,
    style: Optional[SvgStyle] = None,
    settings: Optional[LayoutSettings] = None,
    today: Optional[date] = None,
) -> str:
    """SVG markup for ``pedigree``; the layout is computed when not supplied."""
    if placements is None:
        placements = compute_layout(pedigree, settings)
    return SvgChart(pedigree, placements, style, today).render()
