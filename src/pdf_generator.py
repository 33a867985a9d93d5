"""
PDF Generation Engine.

This module handles the creation of printable assets for BOM review:
1. Cost Reports: comparison of two snapshots plus cost rollup and suggestions.
2. Sticker Sheets: part bin labels formatted for Avery 5160 templates.

It uses the `fpdf2` library to generate PDFs in memory and bundles them into
ZIP archives for user download.
"""

import datetime
import io
import re
import zipfile
from collections import defaultdict

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from src.bom_core.types import BomSnapshot, ComparisonResult, CostAnalysis
from src.bom_core.utils import condense_refs

# Core PDF fonts only cover latin-1.
_LATIN1_SUBSTITUTES = {"Ω": "Ohm", "μ": "u", "€": "EUR", "→": "->", "–": "-"}


def safe_text(text: object) -> str:
    out = str(text)
    for char, repl in _LATIN1_SUBSTITUTES.items():
        out = out.replace(char, repl)
    return out.encode("latin-1", errors="replace").decode("latin-1")


def safe_filename(name: str) -> str:
    return re.sub(r'[<>:"/\\|?*]', "", name).strip() or "BOM"


class StickerSheet(FPDF):
    """
    FPDF Subclass for generating Avery 5160 part bin labels.

    Layout:
        - 3 Columns x 10 Rows (30 labels per page).
        - Dimensions: 2.625" x 1" (66.6mm x 25.4mm).
        - Margins: optimized for standard US Letter.
    """

    def __init__(self):
        super().__init__(format="Letter", unit="mm")
        self.set_auto_page_break(auto=False)
        self.set_margins(4.8, 12.7, 4.8)

        self.label_w = 66.6
        self.label_h = 25.4
        self.cols = 3
        self.rows = 10
        self.current_idx = 0

        self.add_page()

    def add_sticker(self, project_code: str, part_label: str, refs: list[str], qty: int):
        """
        Draws a single sticker at the next available slot.

        Args:
            project_code (str): Short code for the project (e.g., "AMPV").
            part_label (str): Part name or value (e.g., "10k 0603").
            refs (list[str]): Designators using this part.
            qty (int): Total quantity of this part.
        """
        page_idx = self.current_idx % (self.cols * self.rows)
        if self.current_idx > 0 and page_idx == 0:
            self.add_page()

        col = page_idx % self.cols
        row = page_idx // self.cols
        x = 4.8 + col * self.label_w
        y = 12.7 + row * self.label_h

        self.set_xy(x, y)
        self.set_line_width(0.1)
        self.set_draw_color(150, 150, 150)  # Light Grey cut lines
        self.rect(x, y, self.label_w, self.label_h)
        self.set_draw_color(0, 0, 0)

        self.set_font("Helvetica", "B", 8)
        self.cell(
            self.label_w,
            4,
            f"[{safe_text(project_code)}]",
            align="L",
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )

        self.set_xy(x, y + 4)
        self.set_font("Helvetica", "B", 11)
        self.cell(
            self.label_w,
            8,
            safe_text(part_label)[:22],
            align="C",
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )

        self.set_xy(x, y + 13)
        self.set_font("Helvetica", "", 7)
        ref_text = condense_refs(refs)
        if qty > 1:
            ref_text = f"(x{qty}) {ref_text}"
        self.multi_cell(self.label_w, 3, safe_text(ref_text), align="C")

        self.current_idx += 1


class CostReport(FPDF):
    """
    FPDF Subclass for the BOM cost report.

    Features:
        - Automatic pagination with a repeated header/footer.
        - Comparison table (changed designators only) and cost rollup.
    """

    def __init__(self, company_name: str = "", currency: str = "$"):
        super().__init__()
        self.company_name = company_name
        self.currency = safe_text(currency)
        self.set_auto_page_break(auto=True, margin=15)
        self.set_title("BOM Cost Report")

    def header(self):
        self.set_font("Courier", "B", 10)
        title = "BOM Cost Report"
        if self.company_name:
            title = f"{self.company_name} - {title}"
        self.cell(0, 10, safe_text(title), align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.line(10, 20, 200, 20)
        self.ln(10)

    def footer(self):
        self.set_y(-15)
        self.set_font("Courier", "I", 8)
        self.cell(0, 10, f"Page {self.page_no()}", align="C")

    def _money(self, value) -> str:
        return f"{self.currency}{value}"

    def _heading(self, text: str):
        self.set_font("Courier", "B", 14)
        self.cell(0, 10, safe_text(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font("Courier", "", 10)
        date_str = datetime.datetime.now().strftime("%Y-%m-%d")
        self.cell(0, 6, f"Date: {date_str}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(2)

    def _row(self, widths: list[float], values: list[str], bold: bool = False):
        if self.get_y() + 7 > self.page_break_trigger:
            self.add_page()
        self.set_font("Courier", "B" if bold else "", 9)
        for i, (w, v) in enumerate(zip(widths, values)):
            last = i == len(widths) - 1
            # Width 0 stretches to the right margin.
            usable = w or (self.w - self.r_margin - self.get_x())
            self.cell(
                w,
                7,
                safe_text(v)[: int(usable / 2)],
                1,
                new_x=XPos.LMARGIN if last else XPos.RIGHT,
                new_y=YPos.NEXT if last else YPos.TOP,
            )

    def add_comparison(self, comparison: ComparisonResult, old_label: str, new_label: str):
        """Adds a page comparing two snapshots."""
        self.add_page()
        self._heading(f"Comparison: {old_label} -> {new_label}")

        impact = comparison["cost_impact"]
        self.set_font("Courier", "", 10)
        for text in (
            f"{old_label} total: {self._money(impact['bom1_total'])}",
            f"{new_label} total: {self._money(impact['bom2_total'])}",
            f"Difference: {self._money(impact['difference'])} "
            f"({impact['percentage_change']}%)",
            f"Added {len(comparison['added'])} / Removed {len(comparison['removed'])} / "
            f"Modified {len(comparison['modified'])} / "
            f"Unchanged {len(comparison['unchanged'])}",
        ):
            self.cell(0, 6, safe_text(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(3)

        widths = [25, 22, 50, 50, 0]
        self._row(widths, ["Change", "Ref", "Old", "New", "Impact"], bold=True)

        def label(part, qty):
            return f"{qty}x {part.name}" if part else f"{qty}x (unresolved)"

        for e in comparison["added"]:
            self._row(
                widths,
                [
                    "Added",
                    e["designator"],
                    "",
                    label(e["part"], e["quantity"]),
                    self._money(e["cost_impact"]),
                ],
            )
        for e in comparison["removed"]:
            self._row(
                widths,
                [
                    "Removed",
                    e["designator"],
                    label(e["part"], e["quantity"]),
                    "",
                    self._money(e["cost_impact"]),
                ],
            )
        for e in comparison["modified"]:
            self.set_text_color(220, 50, 50)  # Red
            self._row(
                widths,
                [
                    "Modified",
                    e["designator"],
                    label(e["old"]["part"], e["old"]["quantity"]),
                    label(e["new"]["part"], e["new"]["quantity"]),
                    self._money(e["cost_impact"]),
                ],
            )
            self.set_text_color(0, 0, 0)

    def add_cost_analysis(self, analysis: CostAnalysis, label: str):
        """Adds the category rollup and suggestion list for one snapshot."""
        self.add_page()
        self._heading(f"Cost Analysis: {label}")

        summary = analysis["summary"]
        widths = [70, 30, 0]
        self._row(widths, ["Category", "Qty", "Cost"], bold=True)
        for name, group in summary["by_category"].items():
            self._row(widths, [name, str(group["count"]), self._money(group["cost"])])
        self._row(
            widths,
            ["TOTAL", str(summary["total_components"]), self._money(summary["total_cost"])],
            bold=True,
        )

        if not analysis["suggestions"]:
            return

        self.ln(4)
        self.set_font("Courier", "B", 11)
        self.cell(0, 8, "Suggestions", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font("Courier", "", 9)
        for s in analysis["suggestions"]:
            text = f"[{s['type']}] {s['designator']}: {s.get('notes', '')}"
            if s["type"] == "cost_optimization":
                text += f" (saves {self._money(s['potential_savings'])})"
            self.multi_cell(0, 5, safe_text(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def generate_cost_report(
    comparison: ComparisonResult | None,
    analyses: dict[str, CostAnalysis],
    old_label: str = "BOM 1",
    new_label: str = "BOM 2",
    company_name: str = "",
    currency: str = "$",
) -> bytes:
    """
    Renders the cost report PDF.

    Args:
        comparison: Optional comparison between the two snapshots.
        analyses: Cost analysis per snapshot label, in display order.

    Returns:
        bytes: The PDF document.
    """
    pdf = CostReport(company_name=company_name, currency=currency)
    if comparison is not None:
        pdf.add_comparison(comparison, old_label, new_label)
    for label, analysis in analyses.items():
        pdf.add_cost_analysis(analysis, label)
    if pdf.page_no() == 0:
        pdf.add_page()
    return bytes(pdf.output())


def generate_sticker_sheet(snapshot: BomSnapshot, project_code: str | None = None) -> bytes:
    """
    One label per resolved part, listing every designator that uses it.

    Unresolved items are grouped by their BOM value instead.
    """
    groups: dict[str, list[str]] = defaultdict(list)
    quantities: dict[str, int] = defaultdict(int)
    for resolved in snapshot:
        key = resolved.part.name if resolved.part else resolved.item.value or "?"
        groups[key].append(resolved.designator)
        quantities[key] += resolved.quantity

    code_source = project_code or snapshot.project or snapshot.version
    code = "".join(c for c in code_source if c.isalnum()).upper()[:4]

    pdf = StickerSheet()
    for key in sorted(groups):
        pdf.add_sticker(code, key, groups[key], quantities[key])
    return bytes(pdf.output())


def generate_report_bundle(
    files: dict[str, bytes],
    snapshots: list[BomSnapshot],
    report_pdf: bytes | None = None,
) -> bytes:
    """
    Generates a ZIP with the CSV exports, the cost report and a sticker
    sheet per snapshot.

    Args:
        files: Extra root files, name -> content (e.g. CSV exports).
        snapshots: Snapshots to print sticker sheets for.
        report_pdf: Rendered cost report, if any.
    """
    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
        if report_pdf:
            zf.writestr("BOM Cost Report.pdf", report_pdf)
        for snap in snapshots:
            name = safe_filename(f"{snap.project or 'BOM'} v{snap.version}")
            zf.writestr(f"Sticker Sheets/{name} Sticker Sheet.pdf", generate_sticker_sheet(snap))

        info_text = (
            "BOM Cost Report\n"
            "Generated on: " + datetime.datetime.now().strftime("%Y-%m-%d %H:%M") + "\n\n"
            "CONTENTS:\n"
            "- BOM Cost Report.pdf: comparison and cost analysis.\n"
            "- Sticker Sheets/: Labels for Avery 5160 (3x10).\n"
            "- *.csv: raw exports.\n"
        )
        zf.writestr("info.txt", info_text)
    return zip_buffer.getvalue()
