# cardapio_app/timeutils.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

# datas da PagHiper sem offset ('2024-05-01 10:22:03') estão no horário de Brasília
PAGHIPER_TZ = ZoneInfo("America/Sao_Paulo")


def utcnow() -> datetime:
    # as colunas DateTime guardam UTC sem tzinfo (SQLite/Postgres iguais)
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_processor_date(value) -> datetime | None:
    """Converte datas da PagHiper (texto local de Brasília, ISO com offset, epoch) para UTC naive.

    ``datetime`` sem tzinfo já é tratado como UTC (valor interno).
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, (int, float)) or str(value).isdigit():
        dt = datetime.fromtimestamp(int(value), tz=timezone.utc)
    else:
        text = str(value).strip().replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=PAGHIPER_TZ)
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
