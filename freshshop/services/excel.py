import io
import pandas as pd
import numpy as np
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from flask import current_app
from freshshop.constants import ORDER_STATUS_DISPLAY
from freshshop.exceptions import ValidationError

EXPORT_COLUMNS = [
    ('주문ID', 14),
    ('공동구매', 28),
    ('시작일', 12),
    ('고객', 16),
    ('규격', 14),
    ('단가', 10),
    ('수량', 8),
    ('주문금액', 12),
    ('부분환불', 12),
    ('상태', 10),
    ('비고', 30),
    ('주문일시', 20),
]

IMPORT_FIELDS = ['group_buy_id', 'unit_id', 'customer_id', 'quantity', 'description', 'status']
IMPORT_REQUIRED = ['group_buy_id', 'unit_id', 'customer_id', 'quantity']


def export_orders_xlsx(orders):
    """주문 목록을 xlsx 바이트 스트림으로 변환"""
    wb = Workbook()
    ws = wb.active
    ws.title = 'Orders'

    for idx, (title, width) in enumerate(EXPORT_COLUMNS, 1):
        cell = ws.cell(row=1, column=idx, value=title)
        cell.font = Font(bold=True)
        ws.column_dimensions[get_column_letter(idx)].width = width

    for o in orders:
        unit = o.unit
        gb = o.group_buy
        ws.append([
            o.id,
            gb.name if gb else '',
            gb.group_buy_start_date.strftime('%Y-%m-%d') if gb and gb.group_buy_start_date else '',
            o.customer.name if o.customer else '',
            unit.unit if unit else '',
            unit.price if unit else 0,
            o.quantity,
            o.total_amount,
            o.partial_refund_amount or 0,
            ORDER_STATUS_DISPLAY.get(o.status, {}).get('label', o.status),
            o.description or '',
            o.created_at.strftime('%Y-%m-%d %H:%M:%S') if o.created_at else '',
        ])

    ws.freeze_panes = 'A2'
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def _read_sheet(file_stream):
    try:
        if hasattr(file_stream, 'seek'):
            file_stream.seek(0)
        return pd.read_excel(file_stream, header=0)
    except Exception:
        if hasattr(file_stream, 'seek'):
            file_stream.seek(0)
        try:
            return pd.read_csv(file_stream)
        except Exception as e:
            current_app.logger.warning(f"Order import parse failed: {e}")
            raise ValidationError('엑셀 또는 CSV 파일을 읽을 수 없습니다.')


def parse_order_import(file_stream):
    """주문 일괄 등록 시트를 batch_create 입력 목록으로 변환.
    첫 행은 헤더이며 group_buy_id, unit_id, customer_id, quantity 열이 필요"""
    df = _read_sheet(file_stream)
    if df.empty:
        raise ValidationError('등록할 주문 데이터가 없습니다.')

    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in IMPORT_REQUIRED if c not in df.columns]
    if missing:
        raise ValidationError(f"다음 필수 열이 없습니다: {', '.join(missing)}")

    for field in IMPORT_FIELDS:
        if field not in df.columns:
            df[field] = np.nan
    df = df[IMPORT_FIELDS].dropna(how='all').copy()

    for col in ['unit_id', 'description', 'status']:
        df[col] = df[col].astype(str).str.strip().replace({'nan': None, 'None': None, '': None})
    for col in ['group_buy_id', 'customer_id']:
        df[col] = pd.to_numeric(df[col], errors='coerce')

    items = []
    df = df.astype(object).where(pd.notnull(df), None)
    for record in df.to_dict(orient='records'):
        record = {k: (v.item() if isinstance(v, np.generic) else v) for k, v in record.items()}
        for col in ['group_buy_id', 'customer_id']:
            if record[col] is not None:
                record[col] = int(record[col])
        if record['status'] is None:
            record.pop('status')
        items.append(record)
    return items
