from __future__ import annotations

import csv
from typing import Dict, List, Sequence, Tuple

from controle_pedidos.formatting import format_currency, format_date_br, parse_currency, parse_date, parse_int
from controle_pedidos.orders.status_pipeline import ORDER_INITIAL_STATUS, normalize_status, status_label
from controle_pedidos.ui_strings import error_message


ORDER_TEMPLATE_HEADERS: Tuple[str, ...] = (
    "nr_pedido",
    "cliente",
    "medico",
    "vendedor",
    "data",
    "produto",
    "qtd",
    "total",
    "rastreio",
    "status",
)
ORDER_REQUIRED_COLUMNS: Tuple[str, ...] = ("nr_pedido", "cliente", "produto")

ORDER_TEMPLATE_EXAMPLES: Tuple[Dict[str, object], ...] = (
    {
        "order_number": "1234",
        "client": "João Silva",
        "doctor": "Dr. Carlos",
        "seller": "Ana Maria",
        "date": "2025-01-15",
        "product": "3000mg Full",
        "quantity": 5,
        "total_amount": 5000.0,
        "tracking_code": "ABC123",
        "status": "separating",
    },
)

SELLER_TEMPLATE_HEADERS: Tuple[str, ...] = ("nome",)
SELLER_TEMPLATE_EXAMPLES: Tuple[Dict[str, object], ...] = (
    {"name": "João Silva"},
    {"name": "Maria Santos"},
    {"name": "Carlos Oliveira"},
)

ORDER_TEMPLATE_FILENAME = "modelo_importacao_pedidos.csv"
SELLER_TEMPLATE_FILENAME = "modelo_importacao_vendedores.csv"

ParseResult = Tuple[List[dict], List[str]]


def sniff_delimiter(first_line: str) -> str:
    return ";" if ";" in first_line else ","


def _clean_cell(value: str) -> str:
    return str(value or "").strip().replace('"', "")


def _read_table(text: str) -> Tuple[List[str], List[List[str]]]:
    """Split CSV text into a lower-cased header and its non-blank data rows."""
    raw = str(text or "")
    if raw.startswith("\ufeff"):
        raw = raw[1:]
    lines = [line for line in raw.replace("\r\n", "\n").replace("\r", "\n").split("\n") if line.strip()]
    if not lines:
        return [], []

    delimiter = sniff_delimiter(lines[0])
    reader = csv.reader(lines, delimiter=delimiter, quoting=csv.QUOTE_NONE)
    table = [row for row in reader if any(cell.strip() for cell in row)]
    if not table:
        return [], []
    headers = [_clean_cell(cell).lower() for cell in table[0]]
    rows = [[_clean_cell(cell) for cell in row] for row in table[1:]]
    return headers, rows


def _row_mapping(headers: Sequence[str], values: Sequence[str]) -> Dict[str, str]:
    mapped: Dict[str, str] = {}
    for idx, header in enumerate(headers):
        if not header or header in mapped:
            continue
        mapped[header] = values[idx] if idx < len(values) else ""
    return mapped


def parse_orders_csv(text: str, today: str | None = None) -> ParseResult:
    """Parse an order spreadsheet into (valid_rows, errors). Never raises."""
    headers, rows = _read_table(text)
    if not headers or not rows:
        return [], [error_message("csv_empty")]

    valid_rows: List[dict] = []
    errors: List[str] = []
    seen_numbers: set[str] = set()

    for idx, values in enumerate(rows):
        line_no = idx + 2
        row = _row_mapping(headers, values)

        missing = next((column for column in ORDER_REQUIRED_COLUMNS if not row.get(column)), None)
        if missing:
            errors.append(f"Linha {line_no}: {missing} é obrigatório")
            continue

        order_number = row["nr_pedido"].upper()
        if order_number in seen_numbers:
            errors.append(f'Linha {line_no}: pedido "{order_number}" duplicado no arquivo')
            continue
        seen_numbers.add(order_number)

        quantity = parse_int(row.get("qtd"), default=0) or 1
        valid_rows.append(
            {
                "order_number": order_number,
                "client": row["cliente"],
                "doctor": row.get("medico") or "",
                "seller": row.get("vendedor") or "",
                "date": parse_date(row.get("data"), today=today),
                "product": row["produto"].replace("\\n", "\n"),
                "quantity": quantity,
                "total_amount": parse_currency(row.get("total")),
                "tracking_code": row.get("rastreio") or "",
                "status": normalize_status("order", row.get("status")) or ORDER_INITIAL_STATUS,
            }
        )

    return valid_rows, errors


def parse_sellers_csv(text: str) -> ParseResult:
    headers, rows = _read_table(text)
    if not headers or not rows:
        return [], [error_message("csv_empty")]
    if "nome" not in headers:
        return [], [error_message("csv_seller_column_missing")]

    name_idx = headers.index("nome")
    valid_rows: List[dict] = []
    errors: List[str] = []
    seen_names: set[str] = set()

    for idx, values in enumerate(rows):
        line_no = idx + 2
        name = values[name_idx].strip() if name_idx < len(values) else ""
        if not name:
            errors.append(f"Linha {line_no}: nome é obrigatório")
            continue
        key = name.upper()
        if key in seen_names:
            errors.append(f'Linha {line_no}: "{name}" duplicado no arquivo')
            continue
        seen_names.add(key)
        valid_rows.append({"name": name})

    return valid_rows, errors


def _order_template_line(example: Dict[str, object]) -> List[str]:
    return [
        str(example["order_number"]),
        str(example["client"]),
        str(example["doctor"]),
        str(example["seller"]),
        format_date_br(str(example["date"])),
        str(example["product"]).replace("\n", "\\n"),
        str(example["quantity"]),
        format_currency(example["total_amount"]),
        str(example["tracking_code"]),
        status_label("order", str(example["status"])),
    ]


def build_orders_template() -> str:
    lines = [";".join(ORDER_TEMPLATE_HEADERS)]
    lines.extend(";".join(_order_template_line(example)) for example in ORDER_TEMPLATE_EXAMPLES)
    return "\ufeff" + "\n".join(lines)


def build_sellers_template() -> str:
    lines = [";".join(SELLER_TEMPLATE_HEADERS)]
    lines.extend(str(example["name"]) for example in SELLER_TEMPLATE_EXAMPLES)
    return "\ufeff" + "\n".join(lines)
